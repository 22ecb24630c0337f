"""
Query templates.

The record layer never composes whole statements itself: it fills fixed,
named templates with table names and pre-built fragments (field lists, where
clauses, literal values). `TextTemplates` is the default resolver; modules may
register their own templates, which take precedence over the built-in set.

Templates are Jinja2 text with `{{ name }}` placeholders. Unknown names and
None values render as empty strings; values are inserted verbatim, so callers
pass literals that are already encoded.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from jinja2 import BaseLoader, Environment, Template

from rowbinder.errors import TemplateNotFoundError
from rowbinder.records.abstract import Store, TemplateResolver
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)

# Built-in templates target PostgreSQL.
BUILTIN_TEMPLATES: Dict[str, str] = {
    "GetDetails": "SELECT * FROM {{ table_name }} WHERE id = {{ id }}",
    "Search": (
        "SELECT * FROM {{ table_name }} {{ where_clause }} "
        "{{ order_clause }} {{ limit_clause }}"
    ),
    "Insert": "INSERT INTO {{ table_name }} ({{ fields }}) VALUES ({{ values }}) RETURNING id",
    "Update": "UPDATE {{ table_name }} SET {{ fields }} WHERE id = {{ id }}",
    "Delete": "DELETE FROM {{ table_name }} WHERE id = {{ id }}",
    "Exists": "SELECT COUNT(*) AS cnt FROM {{ table_name }} {{ where_clause }}",
    "GetRandomIds": "SELECT id FROM {{ table_name }} {{ where_clause }} ORDER BY RANDOM() LIMIT {{ record_count }}",
    "IncreaseViewCounter": (
        "UPDATE {{ table_name }} SET cnt_viewed = COALESCE(cnt_viewed, 0) + 1, "
        "last_viewed = CURRENT_TIMESTAMP WHERE id = {{ id }}"
    ),
}

_ENVIRONMENT = Environment(
    loader=BaseLoader(),
    autoescape=False,
    keep_trailing_newline=False,
    finalize=lambda value: "" if value is None else value,
)


def compile_template(text: str) -> Template:
    return _ENVIRONMENT.from_string(text)


def substitute(text: str, params: Mapping[str, Any]) -> str:
    """Render template text with `params`; the result is stripped."""
    return compile_template(text).render(dict(params)).strip()


class TextTemplates(TemplateResolver):
    """
    Template resolver backed by in-memory template text.

    Parameters
    ----------
    builtin : Mapping[str, str] | None
        Replacement for the built-in template set, mainly for other dialects.
    """

    def __init__(self, builtin: Optional[Mapping[str, str]] = None) -> None:
        self._builtin: Dict[str, str] = dict(BUILTIN_TEMPLATES if builtin is None else builtin)
        self._modules: Dict[Tuple[str, str], str] = {}
        self._compiled: Dict[str, Template] = {}

    def register(self, module_name: str, template_name: str, text: str) -> None:
        """Add or replace a module template."""
        self._modules[(module_name, template_name)] = text

    def has_template(self, module_name: str, template_name: str) -> bool:
        return (module_name, template_name) in self._modules

    def get(self, module_name: str, template_name: str) -> str:
        text = self._modules.get((module_name, template_name))
        if text is None:
            text = self._builtin.get(template_name)
        if text is None:
            raise TemplateNotFoundError(f"No template {template_name!r} in module {module_name!r}")
        return text

    def render(self, module_name: str, template_name: str, params: Mapping[str, Any]) -> str:
        text = self.get(module_name, template_name)
        template = self._compiled.get(text)
        if template is None:
            template = self._compiled[text] = compile_template(text)
        return template.render(dict(params)).strip()

    def render_text(self, text: str, params: Mapping[str, Any]) -> str:
        return substitute(text, params)


class TemplateQueries:
    """
    Shortcuts that render a module template and run it against the store.

    Use these for ad-hoc statements whose outcome is not tracked by a record;
    records use their own insert/update/delete for tracked changes.
    """

    def __init__(self, store: Store, templates: TemplateResolver) -> None:
        self.store = store
        self.templates = templates

    def preview(self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Return the statement a template would run, without running it."""
        return self.templates.render(module_name, template_name, params or {})

    def sql_to_list(
        self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return self.store.query(self.preview(module_name, template_name, params))

    def sql_to_row(
        self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        rows = self.sql_to_list(module_name, template_name, params)
        return rows[0] if rows else {}

    def run_sql(self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None) -> int:
        return self.store.execute(self.preview(module_name, template_name, params))

    def count(self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """Number of rows the template's SELECT would return."""
        query = self.preview(module_name, template_name, params)
        rows = self.store.query(f"SELECT COUNT(*) AS cnt FROM ({query}) basequery")
        if not rows:
            return 0
        return int(rows[0].get("cnt") or 0)

    def get_new_id(self, module_name: str, template_name: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """Run an INSERT template and return the generated id, -1 on failure."""
        if self.run_sql(module_name, template_name, params) > 0:
            return self.store.last_insert_id()
        log.warning(
            f"Insert template {template_name} failed",
            extra={"module_name": module_name, "store_error": self.store.last_error()},
        )
        return -1


__all__ = ["BUILTIN_TEMPLATES", "TemplateQueries", "TextTemplates", "substitute"]
