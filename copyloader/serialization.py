"""Value and row encoding for the COPY text format.

COPY's text format (https://www.postgresql.org/docs/current/sql-copy.html)
reads one row per line, columns split on a single-character delimiter.
Backslash starts an escape sequence, so backslashes, line breaks and the
delimiter itself must be escaped in every value. A mistake here does not
raise anywhere; the server silently loads different data.

Absent values are written as the bare token ``NULL``, matching the
``NULL AS 'NULL'`` clause of the COPY statement. A present string equal to
``"NULL"`` is written the same way and comes back as SQL NULL.
"""

import math
import numbers
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

import numpy as np
from zoneinfo import ZoneInfo

from copyloader.config import LoadOptions
from copyloader.exceptions import ConfigValidationError, ValueSerializationError
from copyloader.types import ColumnType, TypeKind

NULL_TOKEN = "NULL"

EPOCH_DATE = date(1970, 1, 1)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Converter = Callable[[Any], str]


def _check_delimiter(delimiter: str) -> str:
    if delimiter is None or len(delimiter) != 1:
        raise ConfigValidationError(
            f"The delimiter should be a single character, got {delimiter!r}"
        )
    return delimiter


def escape_value(text: str, delimiter: str) -> str:
    """Escape one serialized value for the COPY text format.

    >>> escape_value("a,b", ",")
    'a\\\\,b'
    """
    _check_delimiter(delimiter)
    out = []
    for ch in text:
        if ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == delimiter:
            out.append("\\" + delimiter)
        else:
            out.append(ch)
    return "".join(out)


def _format_float(value: Any) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return str(value)


def _to_date(value: Any, column_type: ColumnType) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return EPOCH_DATE + timedelta(days=int(value))
    raise ValueSerializationError(value, str(column_type), "date or day number")


def _to_timestamp(value: Any, column_type: ColumnType, tz: ZoneInfo) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return (EPOCH + timedelta(microseconds=int(value))).astimezone(tz)
    raise ValueSerializationError(value, str(column_type), "datetime or epoch microseconds")


def make_converter(column_type: ColumnType, options: LoadOptions) -> Converter:
    """Build the text converter for one column type."""
    kind = column_type.kind
    label = str(column_type)

    if kind == TypeKind.STRING:

        def convert(value):
            if not isinstance(value, str):
                raise ValueSerializationError(value, label, "str")
            return value

    elif kind == TypeKind.BOOLEAN:

        def convert(value):
            if not isinstance(value, (bool, np.bool_)):
                raise ValueSerializationError(value, label, "bool")
            return "true" if value else "false"

    elif kind in (TypeKind.BYTE, TypeKind.SHORT, TypeKind.INTEGER, TypeKind.LONG):

        def convert(value):
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueSerializationError(value, label, "int")
            return str(int(value))

    elif kind in (TypeKind.FLOAT, TypeKind.DOUBLE):

        def convert(value):
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ValueSerializationError(value, label, "float")
            return _format_float(value)

    elif kind == TypeKind.DECIMAL:

        def convert(value):
            if isinstance(value, Decimal):
                return str(value)
            if isinstance(value, numbers.Integral) and not isinstance(value, bool):
                return str(int(value))
            # Binary floats would silently lose digits
            raise ValueSerializationError(value, label, "Decimal or int")

    elif kind == TypeKind.DATE:
        date_format = options.date_format

        def convert(value):
            return _to_date(value, column_type).strftime(date_format)

    elif kind == TypeKind.TIMESTAMP:
        timestamp_format = options.timestamp_format
        tz = ZoneInfo(options.timezone)

        def convert(value):
            return _to_timestamp(value, column_type, tz).strftime(timestamp_format)

    elif kind == TypeKind.BINARY:

        def convert(value):
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise ValueSerializationError(value, label, "bytes")
            # Lossy for payloads that are not UTF-8
            return bytes(value).decode("utf-8", errors="replace")

    elif kind == TypeKind.USER_DEFINED:
        return make_converter(column_type.inner, options)

    else:

        def convert(value):
            return str(value)

    return convert


def serialize_value(value: Any, column_type: ColumnType, options: LoadOptions) -> str:
    """Convert one non-null value to its COPY text form (before escaping)."""
    return make_converter(column_type, options)(value)


class RowEncoder:
    """Encodes rows into COPY text records.

    The delimiter is checked when the encoder is built, so a bad delimiter
    fails before the first row is read.
    """

    def __init__(self, column_types: Sequence[ColumnType], options: LoadOptions):
        self.delimiter = _check_delimiter(options.delimiter)
        self.column_types = list(column_types)
        self.converters: List[Converter] = [
            make_converter(column_type, options) for column_type in self.column_types
        ]

    def encode(self, row: Sequence[Any]) -> bytes:
        if len(row) != len(self.converters):
            raise ValueError(
                f"Row has {len(row)} values but the schema has {len(self.converters)} columns"
            )
        values = []
        for value, convert in zip(row, self.converters):
            if value is None:
                values.append(NULL_TOKEN)
            else:
                values.append(escape_value(convert(value), self.delimiter))
        return (self.delimiter.join(values) + "\n").encode("utf-8")

    def encode_rows(self, rows: Iterable[Sequence[Any]]) -> Iterator[bytes]:
        for row in rows:
            yield self.encode(row)


def encode_row(
    row: Sequence[Any],
    column_types: Sequence[ColumnType],
    options: LoadOptions,
    encoder: Optional[RowEncoder] = None,
) -> bytes:
    """Encode a single row. Pass ``encoder`` to reuse converters across rows."""
    encoder = encoder or RowEncoder(column_types, options)
    return encoder.encode(row)
