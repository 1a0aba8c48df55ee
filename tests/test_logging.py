"""
Structured JSON logging and request-scoped context.
"""

import json
import logging
from io import StringIO

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _capture():
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = get_logger("tests.logging")
    logger.addHandler(handler)
    return logger, handler, stream


class TestStructuredFormatter:

    def test_one_json_object_per_line(self):
        logger, handler, stream = _capture()
        try:
            logger.info("movement_recorded", extra={"quantity": -3, "product_id": "p-1"})
        finally:
            logger.removeHandler(handler)

        record = json.loads(stream.getvalue().strip())
        assert record["message"] == "movement_recorded"
        assert record["level"] == "INFO"
        assert record["logger"] == "inventory_kernel.tests.logging"
        assert (record["quantity"], record["product_id"]) == (-3, "p-1")

    def test_context_fields_included(self):
        logger, handler, stream = _capture()
        try:
            with LogContext.bind(store_id="store-9", actor_id="USER_ana"):
                logger.info("inside")
            logger.info("outside")
        finally:
            logger.removeHandler(handler)

        inside, outside = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert inside["store_id"] == "store-9"
        assert inside["actor_id"] == "USER_ana"
        assert "store_id" not in outside

    def test_exception_fields(self):
        logger, handler, stream = _capture()
        try:
            try:
                raise InsufficientStockError("p-1", available=1, requested=4, product_name="Lapiz")
            except InsufficientStockError:
                logger.exception("failed")
        finally:
            logger.removeHandler(handler)

        record = json.loads(stream.getvalue().strip())
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_available"] == 1
        assert "traceback" in record


class TestLogContext:

    def test_set_and_clear(self):
        LogContext.set(correlation_id="c-1", order_id="o-1")
        assert LogContext.get_all() == {"correlation_id": "c-1", "order_id": "o-1"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(store_id="outer")
        with LogContext.bind(store_id="inner"):
            assert LogContext.get_all()["store_id"] == "inner"
        assert LogContext.get_all()["store_id"] == "outer"
