"""Tests for logging infrastructure.

Covers:
- Lazy message evaluation
- Context binding and injection into records
- JSON Lines formatting
- configure_logging handler wiring
"""

from __future__ import annotations

import json
import logging

import pytest

from nestedtree.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    configure_logging,
    get_lazy_logger,
    get_log_context,
    log_context,
    set_log_context,
    shutdown,
)


@pytest.fixture(autouse=True)
def reset_context():
    clear_log_context()
    yield
    clear_log_context()


def make_record(message: str = "Nested set fixed", **extra) -> logging.LogRecord:
    record = logging.LogRecord("nestedset.Category", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ============================================================================
# Lazy logger
# ============================================================================


@pytest.mark.unit
class TestLazyLogger:
    def test_callable_not_evaluated_when_disabled(self, caplog):
        calls = []
        logger = get_lazy_logger("nestedset.Lazy")

        with caplog.at_level(logging.INFO, logger="nestedset.Lazy"):
            logger.debug(lambda: calls.append(1) or "expensive")

        assert calls == []
        assert caplog.records == []

    def test_callable_evaluated_when_enabled(self, caplog):
        logger = get_lazy_logger("nestedset.Lazy")

        with caplog.at_level(logging.DEBUG, logger="nestedset.Lazy"):
            logger.debug(lambda: "gap at 5: +2")
            logger.info("moved %s rows", lambda: 3)

        assert [r.getMessage() for r in caplog.records] == ["gap at 5: +2", "moved 3 rows"]


# ============================================================================
# Context
# ============================================================================


@pytest.mark.unit
class TestLogContext:
    def test_set_and_clear(self):
        set_log_context(model="MenuItem")
        set_log_context(scope="menu_id=1")

        assert get_log_context() == {"model": "MenuItem", "scope": "menu_id=1"}

        clear_log_context()
        assert get_log_context() == {}

    def test_block_context_is_restored(self):
        set_log_context(model="Category")

        with log_context(operation="nestedset.fix_tree"):
            assert get_log_context() == {"model": "Category", "operation": "nestedset.fix_tree"}

        assert get_log_context() == {"model": "Category"}

    def test_filter_keeps_explicit_extra(self):
        record = make_record(scope="explicit")

        with log_context(scope="bound", model="Category"):
            assert ContextInjectingFilter().filter(record)

        assert record.scope == "explicit"
        assert record.model == "Category"


# ============================================================================
# Formatting and configuration
# ============================================================================


@pytest.mark.unit
class TestJSONFormatter:
    def test_extra_fields_are_copied(self):
        formatter = JSONFormatter(static={"service": "nestedtree"})

        data = json.loads(formatter.format(make_record(changed=4, entity="Category")))

        assert data["message"] == "Nested set fixed"
        assert data["level"] == "INFO"
        assert data["changed"] == 4
        assert data["entity"] == "Category"
        assert data["service"] == "nestedtree"
        assert data["timestamp"].endswith("Z")


@pytest.mark.unit
class TestConfigureLogging:
    def test_file_handler_receives_records(self, tmp_path):
        log_file = tmp_path / "logs" / "trees.log"
        root = logging.getLogger()
        level = root.level

        try:
            configure_logging(
                log_level="INFO", file_path=log_file, json_logs=True, console_enabled=False
            )
            with log_context(model="Category"):
                logging.getLogger("nestedset.Category").info(
                    "Nested set rebuilt", extra={"changed": 2}
                )
        finally:
            shutdown()
            root.setLevel(level)

        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert line["message"] == "Nested set rebuilt"
        assert line["changed"] == 2
        assert line["model"] == "Category"
