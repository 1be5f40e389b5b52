"""Context-aware logging for load operations.

A ``LoggingContext`` binds identifiers (load id, partition id, table) to every
message so that interleaved output from parallel partition tasks can be
told apart. Operations can be timed with :meth:`LoggingContext.operation`.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from copyloader.utils import logging as logging_module
from copyloader.utils.logging import StructuredLogger


class OperationType(str, Enum):
    """Kinds of timed operations."""

    SPILL = "spill"
    COPY = "copy"
    PROMOTE = "promote"
    CLEANUP = "cleanup"


@dataclass
class OperationMetrics:
    """Metrics collected while an operation runs."""

    start_time: Optional[float] = None
    end_time: Optional[float] = None
    rows: Optional[int] = None
    bytes: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.elapsed_ms is not None:
            result["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.rows is not None:
            result["rows"] = self.rows
        if self.bytes is not None:
            result["bytes"] = self.bytes
        result.update(self.extra)
        return result


class LoggingContext:
    """Logger wrapper that prefixes every entry with load/partition context."""

    def __init__(
        self,
        logger: Optional[StructuredLogger] = None,
        load_id: Optional[str] = None,
        partition_id: Optional[int] = None,
        table: Optional[str] = None,
    ):
        self._logger = logger
        self.load_id = load_id
        self.partition_id = partition_id
        self.table = table

    @property
    def logger(self) -> StructuredLogger:
        # Resolved lazily so configure_logging() takes effect everywhere
        if self._logger is not None:
            return self._logger
        return logging_module.logger

    def _base_context(self) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {}
        if self.load_id:
            ctx["load_id"] = self.load_id
        if self.partition_id is not None:
            ctx["partition"] = self.partition_id
        if self.table:
            ctx["table"] = self.table
        return ctx

    def with_context(self, **kwargs) -> "LoggingContext":
        """Return a copy of this context with some fields replaced."""
        values = {
            "logger": self._logger,
            "load_id": self.load_id,
            "partition_id": self.partition_id,
            "table": self.table,
        }
        values.update(kwargs)
        return LoggingContext(**values)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **{**self._base_context(), **kwargs})

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **{**self._base_context(), **kwargs})

    def error(self, message: str, **kwargs):
        self.logger.error(message, **{**self._base_context(), **kwargs})

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **{**self._base_context(), **kwargs})

    @contextmanager
    def operation(self, op_type: OperationType, description: str) -> Iterator[OperationMetrics]:
        """Time an operation, logging its start, completion or failure."""
        metrics = OperationMetrics(start_time=time.perf_counter())
        self.debug(f"Starting {op_type.value}: {description}")
        try:
            yield metrics
        except Exception as e:
            metrics.end_time = time.perf_counter()
            self.error(
                f"Failed {op_type.value}: {description}",
                error_type=type(e).__name__,
                error=str(e),
                **metrics.to_dict(),
            )
            raise
        metrics.end_time = time.perf_counter()
        self.info(f"Completed {op_type.value}: {description}", **metrics.to_dict())


_local = threading.local()


def get_logging_context() -> LoggingContext:
    """Return the logging context bound to the current thread."""
    ctx = getattr(_local, "context", None)
    if ctx is None:
        ctx = LoggingContext()
        _local.context = ctx
    return ctx


def set_logging_context(ctx: LoggingContext) -> None:
    _local.context = ctx


def create_logging_context(
    load_id: Optional[str] = None,
    partition_id: Optional[int] = None,
    table: Optional[str] = None,
) -> LoggingContext:
    """Create a new context and bind it to the current thread."""
    ctx = LoggingContext(load_id=load_id, partition_id=partition_id, table=table)
    set_logging_context(ctx)
    return ctx
