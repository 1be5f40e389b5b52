"""Custom exceptions for copyloader."""

from typing import List, Optional


class CopyLoaderException(Exception):
    """Base exception for all copyloader errors."""

    pass


class ConfigValidationError(CopyLoaderException):
    """Configuration validation failed."""

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None):
        self.message = message
        self.file = file
        self.line = line
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format error message with location info."""
        parts = ["Configuration validation error"]
        if self.file:
            parts.append(f"\n  File: {self.file}")
        if self.line:
            parts.append(f"\n  Line: {self.line}")
        parts.append(f"\n  Error: {self.message}")
        return "".join(parts)


class ConnectionError(CopyLoaderException):
    """Connection failed or a statement could not be executed."""

    def __init__(self, connection_name: str, reason: str, suggestions: Optional[List[str]] = None):
        self.connection_name = connection_name
        self.reason = reason
        self.suggestions = suggestions or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format connection error with suggestions."""
        parts = [
            f"✗ Connection failed: {self.connection_name}",
            f"\n  Reason: {self.reason}",
        ]

        if self.suggestions:
            parts.append("\n\n  Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"\n    {i}. {suggestion}")

        return "".join(parts)


class ValueSerializationError(CopyLoaderException, TypeError):
    """A value does not have the runtime shape its column type declares."""

    def __init__(self, value: object, type_name: str, expected: str):
        self.value = value
        self.type_name = type_name
        self.expected = expected
        super().__init__(
            f"✗ Cannot serialize {type(value).__name__} value {value!r} "
            f"as {type_name}: expected {expected}"
        )


class PartitionUploadError(CopyLoaderException):
    """A partition task failed after all of its attempts."""

    def __init__(self, partition_id: int, attempts: int, original_error: Exception):
        self.partition_id = partition_id
        self.attempts = attempts
        self.original_error = original_error
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        return (
            f"✗ Partition {self.partition_id} failed after {self.attempts} attempt(s)"
            f"\n  Type: {type(self.original_error).__name__}"
            f"\n  Error: {self.original_error}"
        )


class LoadCoordinationError(CopyLoaderException):
    """The load did not complete on every partition, or promotion failed."""

    def __init__(
        self,
        table: str,
        message: str,
        expected: Optional[int] = None,
        succeeded: Optional[int] = None,
        failures: Optional[List[PartitionUploadError]] = None,
    ):
        self.table = table
        self.message = message
        self.expected = expected
        self.succeeded = succeeded
        self.failures = failures or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = [f"✗ Load into {self.table} failed: {self.message}"]

        if self.expected is not None:
            parts.append(f"\n  Successful partition tasks: {self.succeeded} of {self.expected}")

        if self.failures:
            parts.append("\n\n  Failed partitions:")
            for failure in self.failures:
                parts.append(
                    f"\n    • partition {failure.partition_id}: "
                    f"{type(failure.original_error).__name__}: {failure.original_error}"
                )

        return "".join(parts)
