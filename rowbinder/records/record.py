"""
Active records.

A Record binds one row of one table to application code. Field edits are
buffered until `update()` or `insert()` commits them; reads through `get()`
see buffered values first. Every statement is built from named templates and
values encoded against the table's cached schema, and every successful
mutation drops the row's cached snapshot.

Subclass Record to bind a table and hook into the lifecycle:

    class Order(Record):
        table_name = "orders"
        temporal = True

        def on_update(self, id):
            notify_billing(id)

    order = Order.get_by_id(context, 5)
    order.set("status", "paid")
    order.update()
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from rowbinder.domain.models import ColumnDescriptor, TableSchema
from rowbinder.domain.types import is_localisable
from rowbinder.errors import ChangeSetError, IdentityConflictError, RevisionUnavailableError
from rowbinder.records.codec import coerce, encode, render, to_int
from rowbinder.records.context import RecordContext
from rowbinder.records.localization import (
    I18N_FIELD,
    LocalizationMap,
    decode_localisations,
    localisation_digest,
    translate_data,
)
from rowbinder.records.query import Paging, build_conditions, id_list, paginate, where_clause
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R", bound="Record")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONFIG_FLAGS = ("temporal", "cache_on_load", "allow_html", "trackable", "allow_insertion_id")


def utc_timestamp() -> str:
    """Current UTC time formatted for timestamp columns."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _same_id(left: Any, right: Any) -> bool:
    return left == right or str(left).strip() == str(right).strip()


class Record:
    """
    Mutable binding between application code and one table row.

    Attributes
    ----------
    table_name : str
        Bound table. Set on subclasses or passed to the constructor.
    module_name : str
        Module scope used to find module templates.
    temporal : bool
        Record every mutation with the context's history recorder.
    cache_on_load : bool | None
        Serve loads from the record cache and cache loaded rows. None defers
        to the context setting.
    allow_html : bool
        Keep markup in quoted values instead of stripping it.
    trackable : bool
        Allow `count_visit()` to bump view counters.
    allow_insertion_id : bool
        Let `insert()` keep a caller-supplied id.
    data : dict
        Last known persisted snapshot.
    change_buffer : dict
        Pending edits not yet committed.
    last_data : dict
        Snapshot taken right before the most recent mutation.
    """

    table_name: str = ""
    module_name: str = ""
    temporal: bool = False
    cache_on_load: Optional[bool] = None
    allow_html: bool = False
    trackable: bool = True
    allow_insertion_id: bool = False

    def __init__(
        self,
        context: RecordContext,
        table_name: Optional[str] = None,
        module_name: Optional[str] = None,
    ) -> None:
        self.context = context
        if table_name is not None:
            self.table_name = table_name
        if module_name is not None:
            self.module_name = module_name
        self.data: Dict[str, Any] = {}
        self.change_buffer: Dict[str, Any] = {}
        self.last_data: Dict[str, Any] = {}
        self.is_cached = False
        self.last_rows_found = 0

    @classmethod
    def model_name(cls) -> str:
        """Identifier used to look up custom templates in the model registry."""
        return cls.__name__

    @classmethod
    def get_by_id(cls: Type[R], context: RecordContext, id: Any, table_name: Optional[str] = None) -> R:
        return cls(context, table_name=table_name).load(id)

    @classmethod
    def get_by_revision(
        cls: Type[R], context: RecordContext, id: Any, revision_date: datetime, table_name: Optional[str] = None
    ) -> R:
        return cls(context, table_name=table_name).load(id, revision_date)

    @classmethod
    def from_data(cls: Type[R], context: RecordContext, data: Mapping[str, Any], table_name: Optional[str] = None) -> R:
        return cls(context, table_name=table_name).load_data(data)

    def _spawn(self: R) -> R:
        """New empty record of the same class, table, module and flags."""
        clone = type(self)(self.context, table_name=self.table_name, module_name=self.module_name)
        for flag in _CONFIG_FLAGS:
            setattr(clone, flag, getattr(self, flag))
        return clone

    def load(self: R, id: Any, revision_date: Optional[datetime] = None) -> R:
        """
        Load the row with `id`.

        Temporal records given a `revision_date` are loaded from history;
        other records ignore the revision and load the current row. A missing
        row leaves `data` empty.
        """
        if revision_date is not None and self.temporal:
            return self._load_revision(id, revision_date)
        if self.is_cached and "id" in self.data and _same_id(self.data["id"], id):
            return self

        if self._caches_on_load():
            cached = self.context.cache.get_record_data(self.table_name, id)
            if cached is not None:
                self.data = cached
                self.is_cached = True
                self.on_load(id)
                return self

        rows = self.context.store.query(self._details_query(id))
        self.data = dict(rows[0]) if rows else {}
        self.is_cached = False
        if self.data:
            if self._caches_on_load():
                self.is_cached = self.context.cache.set_record_data(self)
            self.on_load(id)
        return self

    def _load_revision(self: R, id: Any, revision_date: datetime) -> R:
        history = self.context.history
        if history is None:
            raise RevisionUnavailableError(
                f"No history recorder to load {self.table_name}/{id} at {revision_date}",
                table_name=self.table_name,
            )
        snapshot = history.get_revision(self.table_name, id, revision_date)
        self.data = dict(snapshot) if snapshot else {}
        self.is_cached = False
        return self

    def _details_query(self, id: Any) -> str:
        params = {"table_name": self.table_name, "id": self._id_literal(id)}
        template = self._override_template("GetDetails") or "GetDetails"
        return self.context.templates.render(self.module_name, template, params)

    def load_data(self: R, data: Mapping[str, Any]) -> R:
        self.data = dict(data)
        return self

    def has(self, field: str) -> bool:
        return field in self.data

    def get(self, field: str, default: Any = None) -> Any:
        """Pending value of `field` if one is buffered, else its loaded value."""
        if field in self.change_buffer:
            return self.change_buffer[field]
        return self.data.get(field, default)

    def set(self, field: str, value: Any) -> None:
        """Buffer a new value for a field of the loaded row; unknown fields are ignored."""
        if field in self.data:
            self.change_buffer[field] = value
        else:
            log.debug(f"Ignoring set() of unknown field {field}", extra={"table": self.table_name, "field": field})

    def get_data(self) -> Dict[str, Any]:
        return dict(self.data)

    def get_extended_data(self) -> Dict[str, Any]:
        """Snapshot stored in the record cache. Subclasses may add derived fields."""
        return self.get_data()

    def get_id(self) -> Any:
        return self.data.get("id", -1)

    def get_table_name(self) -> str:
        return self.table_name

    def get_metadata(self) -> TableSchema:
        return self.context.catalog.get_schema(self.table_name)

    def is_valid(self) -> bool:
        return self.data.get("id") is not None

    def is_temporal(self) -> bool:
        return self.temporal

    def invalidate(self: R) -> R:
        """Forget the loaded snapshot. Pending changes are kept."""
        self.data = {}
        self.is_cached = False
        return self

    def invalidate_cache(self) -> None:
        if self.is_valid():
            self.context.cache.delete_record_data(self.table_name, self.get_id())
        self.is_cached = False

    def _caches_on_load(self) -> bool:
        if self.cache_on_load is not None:
            return self.cache_on_load
        return bool(self.context.cache_on_load)

    def _forget_cached(self, id: Any) -> None:
        self.context.cache.delete_record_data(self.table_name, id)
        self.is_cached = False

    def check_access(self, action: str) -> bool:
        """Permission hook consulted before insert, update and delete."""
        return True

    def _revise_buffer(self, changes: Optional[Mapping[str, Any]], ignore_previous_changes: bool) -> None:
        if ignore_previous_changes:
            if not changes:
                raise ChangeSetError(
                    "Attempt to discard previous changes without providing new ones",
                    table_name=self.table_name,
                )
            self.change_buffer = {}
        self.change_buffer.update(changes or {})

    def _stamp(self, columns: TableSchema, creating: bool) -> None:
        now = utc_timestamp()
        if creating:
            for name in ("created", "updated"):
                if name in columns:
                    self.change_buffer[name] = now
        elif "updated" in columns and "updated" not in self.change_buffer:
            self.change_buffer["updated"] = now
        if "editor" in columns and "editor" not in self.change_buffer:
            self.change_buffer["editor"] = self.context.editor_provider()

    def _encoded(self, column: ColumnDescriptor, value: Any) -> Any:
        return coerce(value, column, allow_html=self.allow_html)

    def update(self, changes: Optional[Mapping[str, Any]] = None, ignore_previous_changes: bool = False) -> Any:
        """
        Commit buffered changes (plus `changes`) to the loaded row.

        Parameters
        ----------
        changes : Mapping[str, Any] | None
            Extra field values merged into the change buffer.
        ignore_previous_changes : bool
            Replace the buffer with `changes` instead of merging.

        Returns
        -------
        Any
            The record id on success, -1 when access is denied, no row is
            loaded, nothing can be written, or the store changed no rows.

        Raises
        ------
        ChangeSetError
            Previous changes discarded without new ones.
        IdentityConflictError
            A buffered id differs from the loaded id.
        """
        if not self.check_access("update"):
            log.info("Update denied", extra={"table": self.table_name})
            return -1

        self._revise_buffer(changes, ignore_previous_changes)

        if not self.is_valid():
            log.warning("update() called on a record without an id", extra={"table": self.table_name})
            return -1
        id = self.data["id"]
        if "id" in self.change_buffer and not _same_id(self.change_buffer["id"], id):
            raise IdentityConflictError(
                "Attempt to provide a different id for update",
                table_name=self.table_name,
                expected=id,
                received=self.change_buffer["id"],
            )

        columns = self.get_metadata()
        self._stamp(columns, creating=False)

        assignments: List[str] = []
        delta: Dict[str, Any] = {}
        for name, value in self.change_buffer.items():
            # id is checked above; created is immutable once set.
            if name in ("id", "created"):
                continue
            column = columns.get(name)
            if column is None:
                log.debug(f"Skipping unknown field {name}", extra={"table": self.table_name, "field": name})
                continue
            delta[name] = self._encoded(column, value)
            assignments.append(f"{name} = {render(delta[name])}")

        if not assignments:
            log.warning("update() has nothing to write", extra={"table": self.table_name, "id": id})
            self.change_buffer = {}
            return -1

        query = self.context.templates.render(
            self.module_name,
            "Update",
            {"table_name": self.table_name, "fields": ", ".join(assignments), "id": self._id_literal(id)},
        )
        self.last_data = dict(self.data)
        result = -1
        if self.context.store.execute(query) > 0:
            self.data = {**self.last_data, **delta}
            self._forget_cached(id)
            if self.temporal:
                self.invalidate().load(id)
                self._save_history("update", id, delta)
            self.post_process("update", id)
            result = id
        else:
            log.warning(
                "Update changed no rows",
                extra={"table": self.table_name, "id": id, "store_error": self.context.store.last_error()},
            )

        # Hooks still see the pending changes.
        self.change_buffer = {}
        return result

    def insert(self, changes: Optional[Mapping[str, Any]] = None, ignore_previous_changes: bool = False) -> Any:
        """
        Insert buffered changes (plus `changes`) as a new row and load it.

        Returns
        -------
        Any
            The new id, or -1 when access is denied, nothing can be written,
            or the store rejected the statement.
        """
        if not self.check_access("insert"):
            log.info("Insert denied", extra={"table": self.table_name})
            return -1

        self._revise_buffer(changes, ignore_previous_changes)
        if not self.allow_insertion_id:
            self.change_buffer.pop("id", None)

        columns = self.get_metadata()
        self._stamp(columns, creating=True)

        names: List[str] = []
        literals: List[str] = []
        delta: Dict[str, Any] = {}
        for name, value in self.change_buffer.items():
            column = columns.get(name)
            if column is None:
                log.debug(f"Skipping unknown field {name}", extra={"table": self.table_name, "field": name})
                continue
            delta[name] = self._encoded(column, value)
            names.append(name)
            literals.append(render(delta[name]))

        if not names:
            log.warning("insert() has nothing to write", extra={"table": self.table_name})
            return -1

        query = self.context.templates.render(
            self.module_name,
            "Insert",
            {"table_name": self.table_name, "fields": ", ".join(names), "values": ", ".join(literals)},
        )
        self.last_data = {}
        store = self.context.store
        new_id: Any = -1
        if store.execute(query) > 0:
            new_id = store.last_insert_id()
            if (new_id is None or new_id == -1) and "id" in delta:
                new_id = delta["id"]
        if new_id is None or new_id == -1:
            log.warning("Insert failed", extra={"table": self.table_name, "store_error": store.last_error()})
            return -1

        self._forget_cached(new_id)
        # Picks up column defaults.
        self.invalidate().load(new_id)
        if self.temporal:
            self._save_history("insert", new_id, delta)
        self.post_process("insert", new_id)
        self.change_buffer = {}
        return new_id

    def delete(self, id: Any = None) -> Any:
        """
        Delete the row with `id` (default: the loaded row).

        Returns the id on success, -1 otherwise.
        """
        if not self.check_access("delete"):
            log.info("Delete denied", extra={"table": self.table_name})
            return -1
        if id is None:
            id = self.get("id")
        if id is None:
            return -1

        self.last_data = dict(self.data)
        query = self.context.templates.render(
            self.module_name, "Delete", {"table_name": self.table_name, "id": self._id_literal(id)}
        )
        if self.context.store.execute(query) <= 0:
            log.warning(
                "Delete changed no rows",
                extra={"table": self.table_name, "id": id, "store_error": self.context.store.last_error()},
            )
            return -1

        self._forget_cached(id)
        if self.temporal:
            self._save_history("delete", id, {})
        self.post_process("delete", id)
        return id

    def copy(self, as_record: bool = False) -> Any:
        """Insert the loaded data as a new row; returns its id or the new record."""
        clone = self._spawn()
        new_id = clone.insert(self.get_data())
        return clone if as_record else new_id

    def count_visit(self) -> int:
        """Bump `cnt_viewed` / `last_viewed` of a trackable row that has both."""
        if not (self.trackable and self.has("cnt_viewed") and self.has("last_viewed")):
            return 0
        id = self.get_id()
        affected = self.context.store.execute(
            self.context.templates.render(
                self.module_name,
                "IncreaseViewCounter",
                {"table_name": self.table_name, "id": self._id_literal(id)},
            )
        )
        if affected > 0:
            self._forget_cached(id)
        return affected

    def _save_history(self, operation: str, id: Any, delta: Mapping[str, Any]) -> None:
        history = self.context.history
        if history is None:
            log.warning(
                f"Temporal {operation} not recorded: no history recorder",
                extra={"table": self.table_name, "id": id},
            )
            return
        snapshot = {} if operation == "delete" else self.get_data()
        history.save(self.table_name, id, operation, delta, snapshot)

    def post_process(self, operation: str, id: Any) -> None:
        if operation == "insert":
            self.on_insert(id)
        elif operation == "update":
            self.on_update(id)
        elif operation == "delete":
            self.on_delete(id)

    def on_load(self, id: Any) -> None:
        pass

    def on_insert(self, id: Any) -> None:
        pass

    def on_update(self, id: Any) -> None:
        pass

    def on_delete(self, id: Any) -> None:
        pass

    def _override_template(self, operation: str) -> Optional[str]:
        registry = self.context.registry
        template = registry.find_override(self.model_name(), operation) or registry.find_override(
            self.table_name, operation
        )
        if template is None:
            return None
        if not self.context.templates.has_template(self.module_name, template):
            log.warning(
                f"Override template {template} not found; using the generic {operation}",
                extra={"table": self.table_name, "module_name": self.module_name},
            )
            return None
        return template

    def _id_literal(self, id: Any) -> str:
        column = self.get_metadata().get("id")
        if column is not None:
            return encode(id, column)
        return id_list([id])

    def _where(self, search_params: Optional[Mapping[str, Any]]) -> str:
        return where_clause(build_conditions(search_params or {}, self.get_metadata(), self.allow_html))

    def get_list(
        self,
        search_params: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        ordering: str = "",
        paging: Optional[Paging] = None,
        blacklist: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Rows matching `search_params` as plain dicts.

        A custom `Search` template registered for this model replaces the
        generated statement and receives `search_params` as its parameters.

        Parameters
        ----------
        search_params : Mapping[str, Any] | None
            Equality filter; None values match NULL, unknown fields are dropped.
        limit : int | None
            LIMIT applied by the store.
        ordering : str
            ORDER BY expression.
        paging : Paging | None
            Window applied to the fetched rows.
        blacklist : Iterable[str] | None
            Fields removed from every returned row.
        """
        params = dict(search_params or {})
        override = self._override_template("Search")
        if override is not None:
            query = self.context.templates.render(self.module_name, override, {**params, "table_name": self.table_name})
        else:
            query = self.context.templates.render(
                self.module_name,
                "Search",
                {
                    "table_name": self.table_name,
                    "where_clause": self._where(params),
                    "order_clause": f"ORDER BY {ordering}" if ordering else "",
                    "limit_clause": f"LIMIT {to_int(limit)}" if limit is not None else "",
                },
            )
        rows = self.context.store.query(query)
        self.last_rows_found = len(rows)
        return paginate(rows, paging, blacklist)

    def get_row(self, search_params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """First matching row, or an empty dict."""
        rows = self.get_list(search_params, limit=1)
        return rows[0] if rows else {}

    def search(self: R, search_params: Optional[Mapping[str, Any]] = None, **options: Any) -> List[R]:
        """Matching rows wrapped as records of this class."""
        return [self._spawn().load_data(row) for row in self.get_list(search_params, **options)]

    def select(self, search_params: Optional[Mapping[str, Any]] = None, sort: str = "") -> List[Dict[str, Any]]:
        return self.get_list(search_params, ordering=sort)

    def select_by_query(self, query: str) -> List[Dict[str, Any]]:
        return self.context.store.query(query)

    def select_by_ids(self, ids: Iterable[Any]) -> List[Dict[str, Any]]:
        ids = list(ids)
        if not ids:
            return []
        query = self.context.templates.render(
            self.module_name,
            "Search",
            {"table_name": self.table_name, "where_clause": f"WHERE id IN ({id_list(ids)})"},
        )
        return self.select_by_query(query)

    def get_random_ids(self, record_count: int, search_params: Optional[Mapping[str, Any]] = None) -> List[Any]:
        """Ids of up to `record_count` random matching rows."""
        query = self.context.templates.render(
            self.module_name,
            "GetRandomIds",
            {
                "table_name": self.table_name,
                "record_count": max(to_int(record_count), 0),
                "where_clause": self._where(search_params),
            },
        )
        return [row["id"] for row in self.context.store.query(query) if "id" in row]

    def select_random(self, record_count: int, search_params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.select_by_ids(self.get_random_ids(record_count, search_params))

    def exists(self, search_params: Optional[Mapping[str, Any]] = None) -> bool:
        """True when at least one row matches."""
        params = dict(search_params or {})
        override = self._override_template("Exists")
        if override is not None:
            query = self.context.templates.render(self.module_name, override, {**params, "table_name": self.table_name})
        else:
            query = self.context.templates.render(
                self.module_name, "Exists", {"table_name": self.table_name, "where_clause": self._where(params)}
            )
        rows = self.context.store.query(query)
        return bool(rows) and to_int(rows[0].get("cnt")) > 0

    translate_data = staticmethod(translate_data)

    def is_localisable(self) -> bool:
        return self.has(I18N_FIELD)

    def get_localisations(self) -> LocalizationMap:
        if not self.has(I18N_FIELD):
            return {}
        return decode_localisations(self.get(I18N_FIELD))

    def get_current_localisation(self) -> Dict[str, Any]:
        """Translations for the session language."""
        return self.get_localisations().get(self.context.language_provider(), {})

    def get_localisation_digest(self) -> List[Dict[str, str]]:
        return localisation_digest(self.get_localisations())

    def get_translated_data(self, lang_code: Optional[str] = None) -> Dict[str, Any]:
        """Copy of `data` with the translations for `lang_code` (default: session language) laid over it."""
        language = self.context.language_provider() if lang_code is None else lang_code
        return dict(translate_data(self.get_data(), language))

    @staticmethod
    def is_field_localisable(column: ColumnDescriptor) -> bool:
        return is_localisable(column.type)

    def list_localisable_fields(self) -> List[str]:
        return [column.name for column in self.get_metadata().columns() if self.is_field_localisable(column)]


__all__ = ["Record", "utc_timestamp", "TIMESTAMP_FORMAT"]
