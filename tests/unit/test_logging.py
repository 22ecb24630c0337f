from __future__ import annotations

import json
import logging

from rowbinder.utils.logging import ConsoleFormatter, _json_formatter, configure_logging, get_logger

EXPECTED_ID = 5


def _record(**attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="rowbinder.records.record",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Update changed no rows",
        args=(),
        exc_info=None,
    )
    for name, value in attrs.items():
        setattr(record, name, value)
    return record


def test_json_formatter_promotes_extra_fields() -> None:
    payload = json.loads(_json_formatter(_record(table="items", id=EXPECTED_ID)))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "rowbinder.records.record"
    assert payload["message"] == "Update changed no rows"
    assert payload["table"] == "items"
    assert payload["id"] == EXPECTED_ID


def test_json_formatter_supports_nested_extra_field() -> None:
    payload = json.loads(_json_formatter(_record(extra={"store_error": "boom"})))

    assert payload["store_error"] == "boom"


def test_json_formatter_stringifies_unserializable_values() -> None:
    payload = json.loads(_json_formatter(_record(table=object)))
    assert "object" in payload["table"]


def test_console_formatter_appends_record_context() -> None:
    line = ConsoleFormatter().format(_record(table="items", id=EXPECTED_ID))

    assert "| WARNING | rowbinder.records.record | Update changed no rows" in line
    assert line.endswith(f"[table=items id={EXPECTED_ID}]")


def test_console_formatter_without_context_is_plain() -> None:
    line = ConsoleFormatter().format(_record())
    assert line.endswith("Update changed no rows")


def test_configure_logging_sets_level() -> None:
    configure_logging(level="DEBUG", json_logs=True)
    assert logging.getLogger().level == logging.DEBUG
    assert get_logger("rowbinder.test").name == "rowbinder.test"
    configure_logging(level="INFO")


def test_configure_logging_without_force_keeps_existing_handlers() -> None:
    configure_logging(level="INFO")
    handlers = list(logging.getLogger().handlers)

    configure_logging(level="DEBUG", force=False)

    assert logging.getLogger().handlers == handlers
    assert logging.getLogger().level == logging.INFO
