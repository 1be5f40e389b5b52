"""Base connection interface."""

from abc import ABC, abstractmethod
from typing import Any, IO


class BaseConnection(ABC):
    """Factory for database sessions plus the few primitives a COPY load needs."""

    @abstractmethod
    def validate(self) -> None:
        """Raise ValueError if the configuration is incomplete."""

    @abstractmethod
    def connect(self) -> Any:
        """Open a new DB-API connection. Callers own it and must close it."""

    @abstractmethod
    def execute_statement(self, conn: Any, sql: str) -> bool:
        """Execute one statement on ``conn``."""

    @abstractmethod
    def copy_in(self, conn: Any, sql: str, stream: IO[bytes]) -> int:
        """Stream ``stream`` into the server with a ``COPY ... FROM STDIN`` statement."""

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Whether ``table`` (optionally schema-qualified) exists."""
