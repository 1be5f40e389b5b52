"""Unit tests for copyloader custom exceptions."""

import pytest

from copyloader.exceptions import (
    ConfigValidationError,
    ConnectionError,
    CopyLoaderException,
    LoadCoordinationError,
    PartitionUploadError,
    ValueSerializationError,
)


class TestInheritance:
    @pytest.mark.parametrize(
        "exc_class",
        [
            ConfigValidationError,
            ConnectionError,
            ValueSerializationError,
            PartitionUploadError,
            LoadCoordinationError,
        ],
    )
    def test_all_exceptions_inherit_from_base(self, exc_class):
        assert issubclass(exc_class, CopyLoaderException)

    def test_serialization_error_is_type_error(self):
        assert issubclass(ValueSerializationError, TypeError)


class TestConfigValidationError:
    def test_message_only(self):
        err = ConfigValidationError("bad delimiter")
        assert err.file is None
        assert "Configuration validation error" in str(err)
        assert "bad delimiter" in str(err)

    def test_with_file_and_line(self):
        err = ConfigValidationError("bad value", file="load.yaml", line=3)
        assert "File: load.yaml" in str(err)
        assert "Line: 3" in str(err)


class TestConnectionError:
    def test_suggestions_numbered(self):
        err = ConnectionError("gp", "refused", suggestions=["Check host", "Check port"])
        text = str(err)
        assert "Connection failed: gp" in text
        assert "1. Check host" in text
        assert "2. Check port" in text

    def test_no_suggestions(self):
        assert "Suggestions" not in str(ConnectionError("gp", "refused"))


class TestValueSerializationError:
    def test_message(self):
        err = ValueSerializationError("x", "integer", "int")
        assert err.value == "x"
        assert "Cannot serialize str value 'x' as integer: expected int" in str(err)


class TestPartitionUploadError:
    def test_message(self):
        err = PartitionUploadError(3, 2, RuntimeError("disk full"))
        assert err.partition_id == 3
        assert "Partition 3 failed after 2 attempt(s)" in str(err)
        assert "RuntimeError" in str(err)


class TestLoadCoordinationError:
    def test_counts_and_failures(self):
        failure = PartitionUploadError(1, 1, ValueError("bad row"))
        err = LoadCoordinationError(
            "sales", "not every partition was copied", expected=3, succeeded=2, failures=[failure]
        )
        text = str(err)
        assert "Load into sales failed" in text
        assert "2 of 3" in text
        assert "partition 1: ValueError: bad row" in text

    def test_message_only(self):
        err = LoadCoordinationError("sales", "promotion failed")
        assert err.failures == []
        assert "Successful partition tasks" not in str(err)
