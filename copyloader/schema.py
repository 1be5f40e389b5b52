"""CREATE TABLE column definitions for PostgreSQL / Greenplum."""

from typing import Dict, List, Optional, Tuple

from copyloader.exceptions import ConfigValidationError
from copyloader.types import ColumnType, TableSchema, TypeKind

# Type mapping for table creation
COLUMN_TYPE_TO_SQL: Dict[TypeKind, str] = {
    TypeKind.STRING: "TEXT",
    TypeKind.BOOLEAN: "BOOLEAN",
    TypeKind.BYTE: "SMALLINT",
    TypeKind.SHORT: "SMALLINT",
    TypeKind.INTEGER: "INTEGER",
    TypeKind.LONG: "BIGINT",
    TypeKind.FLOAT: "REAL",
    TypeKind.DOUBLE: "DOUBLE PRECISION",
    TypeKind.DATE: "DATE",
    TypeKind.TIMESTAMP: "TIMESTAMP",
    TypeKind.BINARY: "BYTEA",
    TypeKind.OTHER: "TEXT",
}


def quote_identifier(name: str) -> str:
    """Quote a column name for PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


def sql_type(column_type: ColumnType) -> str:
    """Default SQL type for a column type."""
    if column_type.kind == TypeKind.USER_DEFINED:
        return sql_type(column_type.inner)
    if column_type.kind == TypeKind.DECIMAL:
        return f"NUMERIC({column_type.precision},{column_type.scale})"
    return COLUMN_TYPE_TO_SQL[column_type.kind]


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not inside parentheses."""
    parts = []
    depth = 0
    current = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def parse_column_type_overrides(overrides: Optional[str]) -> Dict[str, str]:
    """Parse ``"name VARCHAR(64), amount NUMERIC(10, 2)"`` into a name → type map."""
    if not overrides:
        return {}

    result: Dict[str, str] = {}
    for item in _split_top_level(overrides):
        pieces = item.split(None, 1)
        if len(pieces) != 2:
            raise ConfigValidationError(
                f"Invalid create_table_column_types entry {item!r}: expected '<column> <type>'"
            )
        name, type_sql = pieces
        result[name.strip('"')] = type_sql.strip()
    return result


def schema_string(schema: TableSchema, create_table_column_types: Optional[str] = None) -> str:
    """Column definition list for ``CREATE TABLE <t> (<here>)``.

    Override names are matched case-insensitively and must exist in the schema.
    """
    overrides = parse_column_type_overrides(create_table_column_types)
    by_lower: Dict[str, Tuple[str, str]] = {
        name.lower(): (name, type_sql) for name, type_sql in overrides.items()
    }

    known = {c.name.lower() for c in schema}
    missing = sorted(original for key, (original, _) in by_lower.items() if key not in known)
    if missing:
        raise ConfigValidationError(
            f"create_table_column_types references unknown columns: {missing}"
        )

    definitions = []
    for column in schema:
        override = by_lower.get(column.name.lower())
        type_sql = override[1] if override else sql_type(column.type)
        definition = f"{quote_identifier(column.name)} {type_sql}"
        if not column.nullable:
            definition += " NOT NULL"
        definitions.append(definition)
    return ", ".join(definitions)
