"""
JSON log lines and request-scoped log context.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from backoffice_kernel.exceptions import StockUpdateConflictError
from backoffice_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


class Captured:
    """Collects what the back-office logger writes."""

    def __init__(self, level=logging.DEBUG):
        self.stream = StringIO()
        handler = logging.StreamHandler(self.stream)
        configure_logging(level=level, handler=handler)
        self.logger = get_logger("tests.logging")

    @property
    def lines(self):
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    @property
    def last(self):
        return self.lines[-1]


@pytest.fixture
def captured():
    return Captured()


class TestJsonLines:

    def test_standard_keys(self, captured):
        captured.logger.info("inventory_item_created")

        line = captured.last
        assert line["message"] == "inventory_item_created"
        assert line["level"] == "INFO"
        assert line["logger"] == "backoffice.tests.logging"
        assert line["ts"].endswith("+00:00")

    def test_configure_installs_the_json_formatter(self, captured):
        handler = logging.getLogger("backoffice").handlers[0]
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_extra_becomes_top_level_keys(self, captured):
        captured.logger.info("stock_transaction_applied", extra={"item_version": 4, "kind": "sale"})

        assert captured.last["item_version"] == 4
        assert captured.last["kind"] == "sale"

    def test_quantities_and_ids_are_strings(self, captured):
        item_id = uuid4()
        captured.logger.info("stock_value", extra={"new_stock": Decimal("12.500"), "item": item_id})

        assert captured.last["new_stock"] == "12.500"
        assert captured.last["item"] == str(item_id)

    def test_context_is_stamped_on_every_line(self, captured):
        LogContext.set(business_id="biz-1", staff_id="staff-9")
        captured.logger.info("first")
        captured.logger.warning("second")

        for line in captured.lines:
            assert line["business_id"] == "biz-1"
            assert line["staff_id"] == "staff-9"

    def test_plain_exception(self, captured):
        try:
            raise KeyError("shelf")
        except KeyError:
            captured.logger.exception("lookup_failed")

        line = captured.last
        assert line["level"] == "ERROR"
        assert line["exc_type"] == "KeyError"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    def test_domain_exception_details(self, captured):
        try:
            raise StockUpdateConflictError("item-1", 5)
        except StockUpdateConflictError:
            captured.logger.error("stock_update_gave_up", exc_info=True)

        line = captured.last
        assert line["exc_type"] == "StockUpdateConflictError"
        assert line["exc_code"] == "STOCK_UPDATE_CONFLICT"
        assert line["exc_item_id"] == "item-1"
        assert line["exc_attempts"] == 5


class TestLogContext:

    def test_known_fields(self):
        assert set(CONTEXT_FIELDS) == {
            "correlation_id", "business_id", "actor_id", "item_id", "staff_id",
        }

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(supplier_id="s-1")

    def test_bind_is_scoped(self):
        LogContext.set(business_id="outer")
        with LogContext.bind(business_id="inner", actor_id="chef"):
            assert LogContext.get_all() == {"business_id": "inner", "actor_id": "chef"}
        assert LogContext.get_all() == {"business_id": "outer"}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(item_id="i-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_bind_drops_none_and_stringifies(self):
        staff_id = uuid4()
        with LogContext.bind(staff_id=staff_id, item_id=None):
            inside = LogContext.get_all()
        assert inside == {"staff_id": str(staff_id)}

    def test_clear(self):
        LogContext.set(correlation_id="c", business_id="b")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_second_call_is_ignored(self):
        captured = Captured()
        configure_logging(handler=logging.StreamHandler(StringIO()))

        captured.logger.info("only_once")
        assert len(captured.lines) == 1
        assert len(logging.getLogger("backoffice").handlers) == 1

    def test_level(self):
        captured = Captured(level=logging.INFO)
        captured.logger.debug("hidden")
        captured.logger.info("shown")

        assert [line["message"] for line in captured.lines] == ["shown"]

    def test_reset_detaches_handlers(self):
        Captured()
        reset_logging()
        assert logging.getLogger("backoffice").handlers == []
