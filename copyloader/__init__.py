"""copyloader - parallel COPY bulk loads into PostgreSQL and Greenplum."""

__version__ = "0.1.0"

from copyloader.config import LoadMode, LoadOptions, PartitionStrategy, PostgresConnectionConfig
from copyloader.coordinator import LoadCoordinator, LoadResult, copy_to_database
from copyloader.dataset import PartitionedDataset
from copyloader.exceptions import (
    ConfigValidationError,
    ConnectionError,
    CopyLoaderException,
    LoadCoordinationError,
    PartitionUploadError,
    ValueSerializationError,
)
from copyloader.serialization import RowEncoder, encode_row, escape_value, serialize_value
from copyloader.types import Column, ColumnType, TableSchema, TypeKind

__all__ = [
    "LoadMode",
    "LoadOptions",
    "PartitionStrategy",
    "PostgresConnectionConfig",
    "LoadCoordinator",
    "LoadResult",
    "copy_to_database",
    "PartitionedDataset",
    "ConfigValidationError",
    "ConnectionError",
    "CopyLoaderException",
    "LoadCoordinationError",
    "PartitionUploadError",
    "ValueSerializationError",
    "RowEncoder",
    "encode_row",
    "escape_value",
    "serialize_value",
    "Column",
    "ColumnType",
    "TableSchema",
    "TypeKind",
]
