from __future__ import annotations

import pytest

from rowbinder.errors import TemplateNotFoundError
from rowbinder.records.templates import TemplateQueries, TextTemplates, substitute


class TestSubstitute:
    def test_placeholders(self):
        assert substitute("SELECT * FROM {{ table_name }} WHERE id = {{ id }}", {"table_name": "t", "id": 3}) == (
            "SELECT * FROM t WHERE id = 3"
        )

    def test_missing_and_none_params_render_empty(self):
        assert substitute("SELECT * FROM {{ table_name }} {{ where_clause }}", {"table_name": "t", "where_clause": None}) == (
            "SELECT * FROM t"
        )

    def test_undefined_names_render_empty(self):
        assert substitute("{{ missing }}x", {}) == "x"

    def test_single_braces_are_left_alone(self):
        assert substitute("SELECT '{\"a\": 1}'", {}) == "SELECT '{\"a\": 1}'"


class TestTextTemplates:
    """Module templates shadow the built-in set."""

    def test_builtin(self):
        templates = TextTemplates()
        assert templates.render("any", "Delete", {"table_name": "t", "id": 1}) == "DELETE FROM t WHERE id = 1"
        assert not templates.has_template("any", "Delete")

    def test_module_template_wins(self):
        templates = TextTemplates()
        templates.register("shop", "Delete", "UPDATE {{ table_name }} SET deleted = 1 WHERE id = {{ id }}")

        assert templates.render("shop", "Delete", {"table_name": "t", "id": 1}).startswith("UPDATE t")
        assert templates.render("other", "Delete", {"table_name": "t", "id": 1}).startswith("DELETE")

    def test_unknown_template(self):
        with pytest.raises(TemplateNotFoundError):
            TextTemplates().render("shop", "Nope", {})

    def test_custom_builtin_set(self):
        templates = TextTemplates(builtin={"Ping": "SELECT 1"})
        assert templates.render("", "Ping", {}) == "SELECT 1"
        with pytest.raises(KeyError):
            templates.get("", "Delete")


class TestTemplateQueries:
    """Ad-hoc template execution."""

    @pytest.fixture()
    def queries(self, seeded_store):
        templates = TextTemplates()
        templates.register("shop", "Cheap", "SELECT id, title FROM items WHERE price < {{ max_price }} ORDER BY id")
        templates.register("shop", "AddNote", "INSERT INTO notes (text) VALUES ('{{ text }}') RETURNING id")
        templates.register("shop", "Restock", "UPDATE items SET qty = qty + 1")
        return TemplateQueries(seeded_store, templates)

    def test_preview(self, queries):
        assert queries.preview("shop", "Cheap", {"max_price": 25}).endswith("price < 25 ORDER BY id")

    def test_list_and_row(self, queries):
        assert [row["id"] for row in queries.sql_to_list("shop", "Cheap", {"max_price": 25})] == [1, 2]
        assert queries.sql_to_row("shop", "Cheap", {"max_price": 15})["title"] == "alpha"
        assert queries.sql_to_row("shop", "Cheap", {"max_price": 0}) == {}

    def test_count(self, queries):
        assert queries.count("shop", "Cheap", {"max_price": 35}) == 3

    def test_run_sql(self, queries):
        assert queries.run_sql("shop", "Restock") == 5

    def test_get_new_id(self, queries):
        assert queries.get_new_id("shop", "AddNote", {"text": "hello"}) == 1
        assert queries.get_new_id("shop", "AddNote", {"text": "it's"}) == -1
