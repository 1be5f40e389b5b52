"""
PostgreSQL / Greenplum Connection
=================================

Opens driver connections for COPY loads and runs the handful of statements
a load needs (CREATE, DROP, ALTER ... RENAME, COPY).
"""

from typing import IO, Any, Dict, List, Optional, Tuple
from urllib.parse import quote_plus

import psycopg2

from copyloader.connections.base import BaseConnection
from copyloader.exceptions import ConnectionError
from copyloader.utils.logging_context import get_logging_context


class PostgresConnection(BaseConnection):
    """
    PostgreSQL-protocol connection (PostgreSQL, Greenplum).

    Supports:
    - One fresh psycopg2 connection per caller (``connect``)
    - COPY FROM STDIN streaming (``copy_in``)
    - Table lookups via SQLAlchemy
    """

    def __init__(
        self,
        host: str,
        database: str,
        port: int = 5432,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sslmode: Optional[str] = None,
        connect_timeout: int = 30,
        options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize PostgreSQL connection settings.

        Args:
            host: Server hostname
            database: Database name
            port: Server port (default: 5432)
            username: Login role
            password: Login password
            sslmode: libpq sslmode
            connect_timeout: Connection timeout in seconds (default: 30)
            options: Extra keyword arguments for psycopg2.connect
        """
        self.host = host
        self.database = database
        self.port = port
        self.username = username
        self.password = password
        self.sslmode = sslmode
        self.connect_timeout = connect_timeout
        self.options = dict(options or {})
        self._engine = None

    @property
    def name(self) -> str:
        return f"Postgres({self.host}:{self.port}/{self.database})"

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``psycopg2.connect``."""
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "connect_timeout": self.connect_timeout,
        }
        if self.username:
            kwargs["user"] = self.username
        if self.password:
            kwargs["password"] = self.password
        if self.sslmode:
            kwargs["sslmode"] = self.sslmode
        kwargs.update(self.options)
        return kwargs

    def sqlalchemy_url(self) -> str:
        """Build the SQLAlchemy URL.

        Example:
            >>> conn = PostgresConnection(host="gp-master", database="dw", username="etl")
            >>> conn.sqlalchemy_url()
            'postgresql+psycopg2://etl@gp-master:5432/dw'
        """
        auth = ""
        if self.username:
            auth = quote_plus(self.username)
            if self.password:
                auth += ":" + quote_plus(self.password)
            auth += "@"
        url = f"postgresql+psycopg2://{auth}{self.host}:{self.port}/{self.database}"
        if self.sslmode:
            url += f"?sslmode={self.sslmode}"
        return url

    def validate(self) -> None:
        """Validate connection configuration."""
        if not self.host:
            raise ValueError("Postgres connection requires 'host'")
        if not self.database:
            raise ValueError("Postgres connection requires 'database'")
        if self.password and not self.username:
            raise ValueError("Postgres connection with a password requires 'username'")

    def connect(self) -> Any:
        """
        Open a new psycopg2 connection.

        Returns:
            psycopg2 connection (caller closes it)

        Raises:
            ConnectionError: If the server cannot be reached or login fails
        """
        try:
            return psycopg2.connect(**self.connect_kwargs())
        except psycopg2.Error as e:
            raise ConnectionError(
                connection_name=self.name,
                reason=f"Failed to connect: {e}",
                suggestions=self._get_error_suggestions(str(e)),
            ) from e

    def execute_statement(self, conn: Any, sql: str) -> bool:
        """Execute one statement on an open connection.

        Errors propagate unchanged so callers can roll back or clean up.
        """
        get_logging_context().debug("Executing statement", sql=sql)
        with conn.cursor() as cursor:
            cursor.execute(sql)
        return True

    def copy_in(self, conn: Any, sql: str, stream: IO[bytes]) -> int:
        """Stream a file-like object through ``COPY ... FROM STDIN``.

        Returns:
            Number of rows the server reports as copied
        """
        with conn.cursor() as cursor:
            cursor.copy_expert(sql, stream)
            return cursor.rowcount

    def get_engine(self):
        """
        Get or create SQLAlchemy engine.

        Returns:
            SQLAlchemy engine instance

        Raises:
            ConnectionError: If the engine cannot connect
        """
        if self._engine is not None:
            return self._engine

        from sqlalchemy import create_engine

        try:
            self._engine = create_engine(
                self.sqlalchemy_url(),
                pool_pre_ping=True,
                connect_args={"connect_timeout": self.connect_timeout, **self.options},
            )
            with self._engine.connect():
                pass
            return self._engine
        except Exception as e:
            self._engine = None
            raise ConnectionError(
                connection_name=self.name,
                reason=f"Failed to create engine: {e}",
                suggestions=self._get_error_suggestions(str(e)),
            ) from e

    def table_exists(self, table: str) -> bool:
        """Check whether a (optionally schema-qualified) table exists."""
        from sqlalchemy import inspect

        schema, table_name = split_table_name(table)
        return inspect(self.get_engine()).has_table(table_name, schema=schema)

    def _get_error_suggestions(self, error_msg: str) -> List[str]:
        """Generate suggestions based on error message."""
        suggestions = []
        error_lower = error_msg.lower()

        if "password authentication failed" in error_lower or "no password supplied" in error_lower:
            suggestions.append("Check username and password")
            suggestions.append("Check pg_hba.conf allows this role from this host")

        if "could not connect" in error_lower or "connection refused" in error_lower:
            suggestions.append(f"Verify the server is reachable at {self.host}:{self.port}")
            suggestions.append("Check firewall rules and that the server accepts TCP connections")

        if "does not exist" in error_lower and "database" in error_lower:
            suggestions.append(f"Verify database '{self.database}' exists")

        if "ssl" in error_lower:
            suggestions.append(f"Check sslmode (current: {self.sslmode})")

        if "timeout" in error_lower:
            suggestions.append(f"Increase connect_timeout (current: {self.connect_timeout}s)")

        return suggestions


def _identifier_parts(table: str) -> List[str]:
    """Split a dotted name on dots that sit outside double quotes."""
    parts = []
    current = ""
    quoted = False
    for ch in table:
        if ch == '"':
            quoted = not quoted
        if ch == "." and not quoted:
            parts.append(current.strip())
            current = ""
        else:
            current += ch
    parts.append(current.strip())
    return parts


def _unquote(part: str) -> str:
    if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
        return part[1:-1].replace('""', '"')
    return part


def split_table_name(table: str) -> Tuple[Optional[str], str]:
    """Split ``schema.table`` into unquoted ``(schema, table)``; schema is None if absent.

    Example:
        >>> split_table_name('public."Daily.Sales"')
        ('public', 'Daily.Sales')
    """
    parts = _identifier_parts(table)
    schema = _unquote(parts[-2]) if len(parts) > 1 else None
    return schema, _unquote(parts[-1])


def rename_target_name(table: str) -> str:
    """Unqualified target name for ``ALTER TABLE ... RENAME TO``, quoting kept as written."""
    return _identifier_parts(table)[-1]
