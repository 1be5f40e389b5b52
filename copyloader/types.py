"""Column types and table schemas for COPY loads."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class TypeKind(str, Enum):
    """Logical column types understood by the value serializer."""

    STRING = "string"
    BOOLEAN = "boolean"
    BYTE = "byte"
    SHORT = "short"
    INTEGER = "integer"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BINARY = "binary"
    USER_DEFINED = "user_defined"
    OTHER = "other"


INTEGRAL_KINDS = (TypeKind.BYTE, TypeKind.SHORT, TypeKind.INTEGER, TypeKind.LONG)
FRACTIONAL_KINDS = (TypeKind.FLOAT, TypeKind.DOUBLE)


@dataclass(frozen=True)
class ColumnType:
    """Immutable column type.

    ``precision``/``scale`` only apply to DECIMAL. USER_DEFINED types wrap the
    type they are stored as in ``inner``.
    """

    kind: TypeKind
    precision: Optional[int] = None
    scale: Optional[int] = None
    inner: Optional["ColumnType"] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.kind == TypeKind.USER_DEFINED and self.inner is None:
            raise ValueError("USER_DEFINED column types require an inner type")

    @classmethod
    def decimal(cls, precision: int = 38, scale: int = 18) -> "ColumnType":
        return cls(TypeKind.DECIMAL, precision=precision, scale=scale)

    @classmethod
    def user_defined(cls, name: str, inner: "ColumnType") -> "ColumnType":
        return cls(TypeKind.USER_DEFINED, inner=inner, name=name)

    def __str__(self) -> str:
        if self.kind == TypeKind.DECIMAL:
            return f"decimal({self.precision},{self.scale})"
        if self.kind == TypeKind.USER_DEFINED:
            return f"{self.name}<{self.inner}>"
        return self.kind.value


STRING = ColumnType(TypeKind.STRING)
BOOLEAN = ColumnType(TypeKind.BOOLEAN)
BYTE = ColumnType(TypeKind.BYTE)
SHORT = ColumnType(TypeKind.SHORT)
INTEGER = ColumnType(TypeKind.INTEGER)
LONG = ColumnType(TypeKind.LONG)
FLOAT = ColumnType(TypeKind.FLOAT)
DOUBLE = ColumnType(TypeKind.DOUBLE)
DATE = ColumnType(TypeKind.DATE)
TIMESTAMP = ColumnType(TypeKind.TIMESTAMP)
BINARY = ColumnType(TypeKind.BINARY)
OTHER = ColumnType(TypeKind.OTHER)


# Type mapping for schema inference
PANDAS_TO_COLUMN_TYPE: Dict[str, ColumnType] = {
    "int8": BYTE,
    "int16": SHORT,
    "int32": INTEGER,
    "int64": LONG,
    "uint8": SHORT,
    "uint16": INTEGER,
    "uint32": LONG,
    "uint64": ColumnType.decimal(20, 0),
    "Int8": BYTE,
    "Int16": SHORT,
    "Int32": INTEGER,
    "Int64": LONG,
    "float16": FLOAT,
    "float32": FLOAT,
    "float64": DOUBLE,
    "Float32": FLOAT,
    "Float64": DOUBLE,
    "bool": BOOLEAN,
    "boolean": BOOLEAN,
    "object": STRING,
    "string": STRING,
    "category": STRING,
}


@dataclass(frozen=True)
class Column:
    """A named, typed column."""

    name: str
    type: ColumnType
    nullable: bool = True


@dataclass(frozen=True)
class TableSchema:
    """Ordered list of columns; rows are aligned 1:1 with it."""

    columns: Tuple[Column, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any iterable of columns
        object.__setattr__(self, "columns", tuple(self.columns))
        names = [c.name for c in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names in schema: {duplicates}")

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def types(self) -> List[ColumnType]:
        return [c.type for c in self.columns]

    @classmethod
    def of(cls, *columns: Tuple[str, ColumnType]) -> "TableSchema":
        """Build a schema from ``(name, type)`` pairs."""
        return cls(tuple(Column(name, col_type) for name, col_type in columns))

    @classmethod
    def from_pandas(cls, df: Any) -> "TableSchema":
        """Infer a schema from a pandas DataFrame's dtypes."""
        columns = []
        for name, dtype in df.dtypes.items():
            if str(dtype) == "object":
                col_type = infer_column_type_value(df[name].dropna())
            else:
                col_type = infer_column_type_pandas(dtype)
            columns.append(Column(str(name), col_type))
        return cls(tuple(columns))


def infer_column_type_pandas(dtype: Any) -> ColumnType:
    """Map a pandas dtype to a column type (unknown dtypes become STRING)."""
    dtype_str = str(dtype)
    if dtype_str in PANDAS_TO_COLUMN_TYPE:
        return PANDAS_TO_COLUMN_TYPE[dtype_str]
    if dtype_str.startswith("datetime64"):
        return TIMESTAMP
    if dtype_str.startswith("timedelta64"):
        return OTHER
    return STRING


def infer_column_type_value(values: Any) -> ColumnType:
    """Infer the type of an object column from its first non-null value."""
    for value in values:
        if isinstance(value, bool):
            return BOOLEAN
        if isinstance(value, Decimal):
            return ColumnType.decimal()
        if isinstance(value, datetime):
            return TIMESTAMP
        if isinstance(value, date):
            return DATE
        if isinstance(value, (bytes, bytearray, memoryview)):
            return BINARY
        if isinstance(value, str):
            return STRING
        return OTHER
    return STRING
