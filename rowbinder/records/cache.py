"""
Two-tier record cache.

A process-local memo map sits in front of a persistent key/value backend.
Reads check the memo first and fall back to the backend, decoding the JSON
payload and memoizing it. Writes go to both tiers. The backend is the source
of truth across processes; the memo is best-effort and only ever holds values
that were decoded from (or encoded to) the backend's exact payload.

Key layout:
    metadata/<table>        serialized TableSchema
    models/<table>/<id>     serialized record snapshot
    settings:modelMapping   serialized table -> model registration map
"""

from __future__ import annotations

import copy
import json
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic_core import PydanticSerializationError, to_jsonable_python

from rowbinder.records.abstract import CacheBackend
from rowbinder.utils.logging import get_logger

if TYPE_CHECKING:
    from rowbinder.domain.models import TableSchema
    from rowbinder.records.record import Record

METADATA_PREFIX = "metadata/"
RECORDS_PREFIX = "models/"
MODEL_MAPPING_KEY = "settings:modelMapping"

log = get_logger(__name__)


def metadata_key(table_name: str) -> str:
    return f"{METADATA_PREFIX}{table_name}"


def record_key(table_name: str, id: Any) -> str:
    return f"{RECORDS_PREFIX}{table_name}/{id}"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    # time, UUID and timedelta values go through pydantic.
    return to_jsonable_python(value)


def _has_positive_id(id: Any) -> bool:
    if id is None or id == "":
        return False
    if isinstance(id, bool):
        return False
    try:
        return int(id) > 0
    except (TypeError, ValueError):
        # Non-numeric keys (uuids, slugs) are valid ids.
        return True


class RecordCache:
    """
    Caching policy for schema metadata and record snapshots.

    Parameters
    ----------
    backend : CacheBackend
        Persistent tier. Shared by every process that should observe the same
        cached state.
    """

    def __init__(self, backend: CacheBackend) -> None:
        self.backend = backend
        self._memo: Dict[str, Any] = {}

    def has(self, key: str) -> bool:
        return key in self._memo or self.backend.has(key)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the decoded value for `key`, or `default` on a miss.

        A payload that cannot be decoded is treated as a miss.
        """
        if key in self._memo:
            return copy.deepcopy(self._memo[key])
        raw = self.backend.get(key)
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as exc:
            log.warning(
                f"Discarding undecodable cache payload for {key}",
                extra={"cache_key": key, "error": str(exc)},
            )
            return default
        self._memo[key] = value
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, indent=2, default=_json_default)
        self.backend.set(key, payload.encode("utf-8"))
        # Memoize the decoded payload so both tiers hold the same value.
        self._memo[key] = json.loads(payload)

    def delete(self, key: str) -> None:
        self._memo.pop(key, None)
        # The backend may hold the key even when the memo does not.
        self.backend.delete(key)

    def delete_by_prefix(self, prefix: str) -> int:
        """
        Remove every persisted key under `prefix` and its memo entries.

        Returns
        -------
        int
            Number of persisted entries removed.
        """
        keys = self.backend.list_keys_by_prefix(prefix)
        for key in keys:
            self.backend.delete(key)
        for key in [k for k in self._memo if k.startswith(prefix)]:
            del self._memo[key]
        log.debug(f"Deleted {len(keys)} cache entries under {prefix}", extra={"prefix": prefix})
        return len(keys)

    def clear_memo(self) -> None:
        """Forget process-local copies; the backend is untouched."""
        self._memo.clear()

    def get_metadata(self, table_name: str) -> Optional[Dict[str, Any]]:
        value = self.get(metadata_key(table_name))
        return value if isinstance(value, dict) else None

    def set_metadata(self, table_name: str, schema: "TableSchema") -> None:
        self.set(metadata_key(table_name), schema.model_dump(mode="json"))

    def delete_metadata(self, table_name: str) -> None:
        self.delete(metadata_key(table_name))

    def invalidate_all_metadata(self) -> int:
        self.delete(MODEL_MAPPING_KEY)
        return self.delete_by_prefix(METADATA_PREFIX)

    def get_record_data(self, table_name: str, id: Any) -> Optional[Dict[str, Any]]:
        value = self.get(record_key(table_name, id))
        return value if isinstance(value, dict) else None

    def set_record_data(self, record: "Record") -> bool:
        """
        Cache the extended snapshot of `record`.

        Records without a positive id, or holding values that cannot be
        encoded, are not cached.
        """
        data = record.get_extended_data()
        id = data.get("id")
        if not _has_positive_id(id):
            return False
        table_name = record.get_table_name()
        try:
            self.set(record_key(table_name, id), data)
        except (TypeError, ValueError, PydanticSerializationError) as exc:
            log.warning(
                f"Record {table_name}/{id} could not be cached",
                extra={"table": table_name, "id": id, "error": str(exc)},
            )
            return False
        return True

    def delete_record_data(self, table_name: str, id: Any) -> None:
        self.delete(record_key(table_name, id))

    def invalidate_table(self, table_name: str) -> int:
        return self.delete_by_prefix(f"{RECORDS_PREFIX}{table_name}/")

    def invalidate_all_records(self) -> int:
        return self.delete_by_prefix(RECORDS_PREFIX)


__all__ = [
    "RecordCache",
    "METADATA_PREFIX",
    "RECORDS_PREFIX",
    "MODEL_MAPPING_KEY",
    "metadata_key",
    "record_key",
]
