import json
import logging
from unittest.mock import patch

import pytest

from copyloader.utils import logging as logging_module
from copyloader.utils.logging import StructuredLogger, configure_logging
from copyloader.utils.logging_context import (
    LoggingContext,
    OperationMetrics,
    OperationType,
    create_logging_context,
    get_logging_context,
    set_logging_context,
)


@pytest.fixture(autouse=True)
def suppress_copyloader_logging():
    logger = logging.getLogger("copyloader")
    old_propagate = logger.propagate
    logger.propagate = False
    yield
    logger.propagate = old_propagate


def read_json_lines(capsys):
    return [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]


class TestOperationMetrics:
    def test_elapsed_ms_none_when_no_end_time(self):
        assert OperationMetrics(start_time=1.0).elapsed_ms is None

    def test_elapsed_ms_correct_value(self):
        m = OperationMetrics(start_time=10.0, end_time=10.5)
        assert m.elapsed_ms == pytest.approx(500.0)

    def test_to_dict_only_non_none_fields(self):
        assert OperationMetrics().to_dict() == {}

    def test_to_dict_all_fields_populated(self):
        m = OperationMetrics(
            start_time=1.0, end_time=2.0, rows=10, bytes=256, extra={"custom": "value"}
        )
        assert m.to_dict() == {
            "elapsed_ms": pytest.approx(1000.0),
            "rows": 10,
            "bytes": 256,
            "custom": "value",
        }


class TestStructuredLogger:
    def test_register_secret(self):
        logger = StructuredLogger(structured=True)
        logger.register_secret("s3cret")
        assert logger._redact("password=s3cret") == "password=[REDACTED]"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_register_secret_ignores_invalid(self, value):
        logger = StructuredLogger(structured=True)
        logger.register_secret(value)
        assert logger._secrets == set()

    def test_structured_info_prints_json(self, capsys):
        logger = StructuredLogger(structured=True, level="DEBUG")
        logger.info("copied", rows=5)

        (entry,) = read_json_lines(capsys)
        assert entry["level"] == "INFO"
        assert entry["message"] == "copied"
        assert entry["rows"] == 5
        assert "timestamp" in entry

    def test_structured_redacts_secrets_in_kwargs(self, capsys):
        logger = StructuredLogger(structured=True)
        logger.register_secret("s3cret")
        logger.error("connect failed", dsn="user=etl password=s3cret")

        (entry,) = read_json_lines(capsys)
        assert "s3cret" not in entry["dsn"]

    def test_log_below_level_skipped(self, capsys):
        logger = StructuredLogger(structured=True, level="WARNING")
        logger.info("hidden")
        assert capsys.readouterr().out == ""

    def test_human_readable_warning(self):
        logger = StructuredLogger(structured=False)
        with patch.object(logger.logger, "warning") as mock_warn:
            logger.warning("slow", partition=2)
        mock_warn.assert_called_once_with("[WARN] slow (partition=2)")

    def test_human_readable_info_has_no_prefix(self):
        logger = StructuredLogger(structured=False)
        with patch.object(logger.logger, "info") as mock_info:
            logger.info("done")
        mock_info.assert_called_once_with("done")

    def test_overlapping_secrets_masked_whole(self):
        logger = StructuredLogger(structured=True)
        logger.register_secret("pass")
        logger.register_secret("password123")
        assert logger._redact("pw=password123") == "pw=[REDACTED]"

    def test_driver_loggers_clamped_to_warning(self):
        StructuredLogger(structured=True, level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_configure_logging_replaces_global(self):
        new_logger = configure_logging(structured=True, level="ERROR")
        assert logging_module.logger is new_logger
        assert new_logger.structured is True


class TestLoggingContext:
    @pytest.fixture
    def logger(self):
        return StructuredLogger(structured=True, level="DEBUG")

    def test_context_fields_added(self, logger, capsys):
        ctx = LoggingContext(logger=logger, load_id="abc", partition_id=0, table="sales")
        ctx.info("hello", rows=3)

        (entry,) = read_json_lines(capsys)
        assert entry["load_id"] == "abc"
        assert entry["partition"] == 0
        assert entry["table"] == "sales"
        assert entry["rows"] == 3

    def test_explicit_kwargs_override_context(self, logger, capsys):
        ctx = LoggingContext(logger=logger, table="sales")
        ctx.warning("renamed", table="sales_tmp")

        (entry,) = read_json_lines(capsys)
        assert entry["table"] == "sales_tmp"

    def test_logger_property_fallback_when_none(self):
        assert LoggingContext().logger is logging_module.logger

    def test_with_context(self, logger):
        ctx = LoggingContext(logger=logger, load_id="abc", table="sales")
        child = ctx.with_context(partition_id=4)

        assert child.partition_id == 4
        assert child.load_id == "abc"
        assert child.logger is logger
        assert ctx.partition_id is None

    def test_operation_success(self, logger, capsys):
        ctx = LoggingContext(logger=logger)
        with ctx.operation(OperationType.COPY, "sales") as metrics:
            metrics.rows = 7

        entries = read_json_lines(capsys)
        assert entries[-1]["message"] == "Completed copy: sales"
        assert entries[-1]["rows"] == 7
        assert "elapsed_ms" in entries[-1]

    def test_operation_failure_logs_and_reraises(self, logger, capsys):
        ctx = LoggingContext(logger=logger)
        with pytest.raises(RuntimeError, match="boom"):
            with ctx.operation(OperationType.PROMOTE, "sales"):
                raise RuntimeError("boom")

        entries = read_json_lines(capsys)
        assert entries[-1]["level"] == "ERROR"
        assert entries[-1]["error_type"] == "RuntimeError"


class TestThreadLocalContext:
    def test_get_returns_a_context(self):
        assert isinstance(get_logging_context(), LoggingContext)

    def test_set_and_get_roundtrip(self):
        ctx = LoggingContext(load_id="xyz")
        set_logging_context(ctx)
        assert get_logging_context() is ctx

    def test_create_binds_to_thread(self):
        ctx = create_logging_context(load_id="abc", partition_id=1, table="sales")
        assert get_logging_context() is ctx
        assert ctx.partition_id == 1
