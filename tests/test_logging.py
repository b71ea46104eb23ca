"""Tests for the structured logging system (erp_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from erp_kernel.domain.stock import TransactionType
from erp_kernel.exceptions import InsufficientStockError
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "erp_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("stock_reserved", extra={"line_count": 3, "status": "pending"})

        record = _parse_log(stream)
        assert record["line_count"] == 3
        assert record["status"] == "pending"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", order_id="ord-456")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["order_id"] == "ord-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("wh-1", "sku-1", Decimal("5"), Decimal("2"))
        except InsufficientStockError:
            get_logger("test").error("stock_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_warehouse_id"] == "wh-1"
        assert record["exc_shortfall"] == "3"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "order_id" not in record

    def test_uuid_decimal_and_enum_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed_values",
            extra={"entry_id": uid, "quantity": Decimal("1.50"), "kind": TransactionType.EXPORT},
        )

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["quantity"] == "1.50"
        assert record["kind"] == "export"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")  # below the default INFO level

        logs = _parse_all_logs(stream)
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", order_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "order_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "order_id" not in LogContext.get_all()
        with LogContext.bind(order_id=uuid4()):
            assert "order_id" in LogContext.get_all()
        assert "order_id" not in LogContext.get_all()

    def test_bind_stringifies_and_skips_none(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid, reference_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"actor_id": str(uid)}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            order_id="o",
            reference_id="r",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["reference_id"] == "r"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("erp_kernel").handlers) == 1

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_get_logger_returns_child(self):
        assert get_logger("services.reconciliation").name == "erp_kernel.services.reconciliation"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("modules.sales.service").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "erp_kernel.modules.sales.service"
