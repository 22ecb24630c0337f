from __future__ import annotations

from typer.testing import CliRunner

from rowbinder import config
from rowbinder.infrastructure.db_factory import build_dsn
from rowbinder.infrastructure.postgres_store import _column_type, _key_flag
from rowbinder.main import app
from rowbinder.records.context import RecordContext
from rowbinder.records.templates import TextTemplates

ENV_VARS = ("DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD", "DB_NAME", "DB_SCHEMA", "CACHE_ON_LOAD", "DEFAULT_LANGUAGE")


def test_settings_defaults(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "rowbinder"
    assert settings.db_schema == "public"
    assert settings.cache_on_load is False
    assert settings.default_language == ""


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("CACHE_ON_LOAD", "true")
    monkeypatch.setenv("DEFAULT_LANGUAGE", "de")
    settings = config.Settings(_env_file=None)
    assert settings.cache_on_load is True
    assert settings.default_language == "de"


def test_build_dsn():
    settings = config.Settings(_env_file=None, db_user="u", db_password="p", db_host="h", db_port=1, db_name="d")
    assert build_dsn(settings) == "postgresql://u:p@h:1/d"


def test_postgres_column_types():
    varchar = {"udt_name": "varchar", "character_maximum_length": 64, "numeric_precision": None, "numeric_scale": None}
    numeric = {"udt_name": "numeric", "character_maximum_length": None, "numeric_precision": 10, "numeric_scale": 2}
    mood = {"udt_name": "mood", "character_maximum_length": None, "numeric_precision": None, "numeric_scale": None}

    assert _column_type(varchar, []) == "varchar(64)"
    assert _column_type(numeric, []) == "numeric(10,2)"
    assert _column_type(mood, ["ok", "it's"]) == "enum('ok','it''s')"


def test_postgres_key_flags():
    indexes = [
        {"column_name": "id", "is_primary": True, "is_unique": True},
        {"column_name": "email", "is_primary": False, "is_unique": True},
        {"column_name": "status", "is_primary": False, "is_unique": False},
    ]
    assert _key_flag("id", indexes) == "PRI"
    assert _key_flag("email", indexes) == "UNI"
    assert _key_flag("status", indexes) == "MUL"
    assert _key_flag("body", indexes) == ""


def test_context_defaults(store):
    context = RecordContext.create(store)
    assert isinstance(context.templates, TextTemplates)
    assert context.history is None
    assert context.editor_provider() == 0
    assert context.language_provider() == ""
    assert context.catalog.cache is context.cache


def test_cli_info():
    result = CliRunner().invoke(app, ["info"])
    assert result.exit_code == 0
    assert "schema=" in result.stdout
