"""
Model registry.

Maps tables to the model classes bound to them, together with each model's
module scope, localisable fields and custom query templates. Custom templates
are indexed by (model name, operation) when a model is registered, so the
record layer resolves overrides with a plain lookup.

The mapping is cached as a whole under `settings:modelMapping`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Tuple, Type

from pydantic import ValidationError

from rowbinder.domain.models import ModelInfo
from rowbinder.records.cache import MODEL_MAPPING_KEY, RecordCache
from rowbinder.utils.logging import get_logger

if TYPE_CHECKING:
    from rowbinder.records.record import Record

log = get_logger(__name__)

OverrideIndex = Mapping[Tuple[str, str], str]


def find_override(index: OverrideIndex, model_name: str, operation: str) -> Optional[str]:
    """Template name overriding `operation` for `model_name`, if any."""
    return index.get((model_name, operation))


class ModelRegistry:
    """
    Table to model registration map.

    Parameters
    ----------
    cache : RecordCache | None
        Where `save()`/`load()` persist the mapping. Without a cache the
        registry lives only in memory.
    """

    def __init__(self, cache: Optional[RecordCache] = None) -> None:
        self.cache = cache
        self._models: Dict[str, ModelInfo] = {}
        self._overrides: Dict[Tuple[str, str], str] = {}

    def register(
        self,
        table_name: str,
        class_name: str = "",
        module: str = "",
        i18n: Optional[Iterable[str]] = None,
        overrides: Optional[Mapping[str, str]] = None,
        **params: Any,
    ) -> ModelInfo:
        """
        Register (or re-register) the model bound to `table_name`.

        Later registrations of the same table replace earlier ones, so
        application modules can override shared ones.
        """
        info = ModelInfo(
            table_name=table_name,
            class_name=class_name,
            module=module,
            i18n=[name.strip() for name in (i18n or [])],
            params=dict(params),
            overrides=dict(overrides or {}),
        )
        previous = self._models.get(table_name)
        if previous is not None:
            self._drop_overrides(previous)
        self._models[table_name] = info
        self._index(info)
        log.debug(f"Registered model for {table_name}", extra={"table": table_name, "model": class_name})
        return info

    def register_model(
        self,
        record_cls: Type["Record"],
        overrides: Optional[Mapping[str, str]] = None,
        i18n: Optional[Iterable[str]] = None,
        **params: Any,
    ) -> ModelInfo:
        """Register a Record subclass under its own table and module."""
        return self.register(
            record_cls.table_name,
            class_name=record_cls.model_name(),
            module=record_cls.module_name,
            i18n=i18n,
            overrides=overrides,
            **params,
        )

    def get_model_info(self, table_name: str) -> Optional[ModelInfo]:
        return self._models.get(table_name)

    def mapping(self) -> Dict[str, ModelInfo]:
        return dict(self._models)

    def override_index(self) -> OverrideIndex:
        return MappingProxyType(self._overrides)

    def find_override(self, model_name: str, operation: str) -> Optional[str]:
        return find_override(self._overrides, model_name, operation)

    def save(self) -> bool:
        if self.cache is None:
            return False
        self.cache.set(
            MODEL_MAPPING_KEY,
            {table: info.model_dump(mode="json") for table, info in self._models.items()},
        )
        return True

    def load(self) -> bool:
        """
        Replace the registrations with the cached mapping.

        Returns False (leaving the registry untouched) when nothing usable is
        cached.
        """
        if self.cache is None:
            return False
        payload = self.cache.get(MODEL_MAPPING_KEY)
        if not isinstance(payload, dict):
            return False
        try:
            models = {table: ModelInfo.model_validate(entry) for table, entry in payload.items()}
        except ValidationError as exc:
            log.warning("Cached model mapping is malformed", extra={"error": str(exc)})
            return False
        self._models = models
        self._overrides = {}
        for info in models.values():
            self._index(info)
        return True

    def _model_key(self, info: ModelInfo) -> str:
        return info.class_name or info.table_name

    def _index(self, info: ModelInfo) -> None:
        for operation, template_name in info.overrides.items():
            self._overrides[(self._model_key(info), operation)] = template_name

    def _drop_overrides(self, info: ModelInfo) -> None:
        for operation in info.overrides:
            self._overrides.pop((self._model_key(info), operation), None)

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._models

    def __len__(self) -> int:
        return len(self._models)


__all__ = ["ModelRegistry", "OverrideIndex", "find_override"]
