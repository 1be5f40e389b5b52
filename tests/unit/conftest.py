"""Shared fixtures: an in-memory database that speaks just enough SQL for a COPY load."""

import re
import threading
from typing import Any, Callable, Dict, List, Optional

import psycopg2
import pytest

from copyloader.config import LoadOptions, PostgresConnectionConfig
from copyloader.connections.base import BaseConnection

CREATE_RE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\S+) \(")
DROP_RE = re.compile(r"^DROP TABLE IF EXISTS (\S+)$")
RENAME_RE = re.compile(r"^ALTER TABLE (\S+) RENAME TO (\S+)$")
ISOLATION_RE = re.compile(r"^SET TRANSACTION ISOLATION LEVEL (.+)$")
COPY_RE = re.compile(
    r"^COPY (\S+) FROM STDIN WITH NULL AS 'NULL' DELIMITER AS E'(\\\\|\\'|.)'$", re.DOTALL
)

ESCAPES = {"n": "\n", "r": "\r", "\\": "\\"}


def parse_copy_text(data: str, delimiter: str) -> List[List[Optional[str]]]:
    """Parse COPY text-format data the way the server does."""
    rows = []
    for line in data.split("\n")[:-1]:
        fields: List[Optional[str]] = []
        current: List[str] = []
        raw: List[str] = []
        i = 0
        while i < len(line):
            ch = line[i]
            if ch == "\\" and i + 1 < len(line):
                nxt = line[i + 1]
                current.append(ESCAPES.get(nxt, nxt))
                raw.append(ch + nxt)
                i += 2
                continue
            if ch == delimiter:
                fields.append(None if "".join(raw) == "NULL" else "".join(current))
                current, raw = [], []
            else:
                current.append(ch)
                raw.append(ch)
            i += 1
        fields.append(None if "".join(raw) == "NULL" else "".join(current))
        rows.append(fields)
    return rows


def _unescape_literal(literal: str) -> str:
    if len(literal) == 2 and literal[0] == "\\":
        return literal[1]
    return literal


class FakeDatabase:
    """Thread-safe table store. Tables map to lists of parsed rows."""

    def __init__(self):
        self.tables: Dict[str, List[List[Optional[str]]]] = {}
        self.statements: List[str] = []
        self.lock = threading.Lock()
        self.copy_hook: Optional[Callable[[str, List[List[Optional[str]]]], None]] = None
        self.fail_rename = False
        self.unsupported_isolation_levels: set = set()

    def staging_tables(self, target: str) -> List[str]:
        return [t for t in self.tables if t.startswith(target) and t != target]

    def apply(self, sql: str, session: "FakeSession") -> None:
        with self.lock:
            self.statements.append(sql)

        match = ISOLATION_RE.match(sql)
        if match:
            if match.group(1) in self.unsupported_isolation_levels:
                raise psycopg2.Error(f"isolation level {match.group(1)} is not supported")
            session.isolation_level = match.group(1)
            return

        match = CREATE_RE.match(sql)
        if match:
            table = match.group(1)
            session.run(lambda: self.tables.setdefault(table, []))
            session.created.add(table)
            return

        match = DROP_RE.match(sql)
        if match:
            table = match.group(1)
            session.run(lambda: self.tables.pop(table, None))
            return

        match = RENAME_RE.match(sql)
        if match:
            source, dest = match.groups()
            if self.fail_rename:
                raise psycopg2.Error(f"cannot rename {source}")

            def rename():
                if source not in self.tables:
                    raise psycopg2.Error(f'relation "{source}" does not exist')
                self.tables[dest] = self.tables.pop(source)

            session.run(rename)
            return

        raise AssertionError(f"Unexpected SQL: {sql}")

    def copy(self, sql: str, data: bytes, session: "FakeSession") -> int:
        with self.lock:
            self.statements.append(sql)
        match = COPY_RE.match(sql)
        assert match, f"Unexpected COPY statement: {sql}"
        table, literal = match.group(1), _unescape_literal(match.group(2))
        rows = parse_copy_text(data.decode("utf-8"), literal)

        if self.copy_hook:
            self.copy_hook(table, rows)

        def append():
            if table not in self.tables:
                raise psycopg2.Error(f'relation "{table}" does not exist')
            self.tables[table].extend(rows)

        if table not in self.tables and table not in session.created:
            raise psycopg2.Error(f'relation "{table}" does not exist')
        session.run(append)
        return len(rows)


class FakeSession:
    """DB-API-ish connection: autocommit applies at once, otherwise on commit."""

    def __init__(self, db: FakeDatabase, fail_close: bool = False):
        self.db = db
        self.autocommit = False
        self.pending: List[Callable[[], Any]] = []
        self.created: set = set()
        self.isolation_level: Optional[str] = None
        self.closed = False
        self.committed = False
        self.rolled_back = False
        self.fail_close = fail_close

    def run(self, op: Callable[[], Any]) -> None:
        if self.autocommit:
            with self.db.lock:
                op()
        else:
            self.pending.append(op)

    def commit(self):
        with self.db.lock:
            for op in self.pending:
                op()
        self.pending = []
        self.committed = True

    def rollback(self):
        self.pending = []
        self.created = set()
        self.rolled_back = True

    def close(self):
        self.closed = True
        if self.fail_close:
            raise psycopg2.InterfaceError("connection already closed")


class FakePostgres(BaseConnection):
    """BaseConnection over a FakeDatabase."""

    name = "FakePostgres"

    def __init__(self, db: FakeDatabase):
        self.db = db
        self.sessions: List[FakeSession] = []
        self.fail_close = False
        self.fail_connect = False
        self._lock = threading.Lock()

    def validate(self) -> None:
        pass

    def connect(self) -> FakeSession:
        if self.fail_connect:
            raise psycopg2.OperationalError("could not connect to server")
        session = FakeSession(self.db, fail_close=self.fail_close)
        with self._lock:
            self.sessions.append(session)
        return session

    def execute_statement(self, conn: FakeSession, sql: str) -> bool:
        self.db.apply(sql, conn)
        return True

    def copy_in(self, conn: FakeSession, sql: str, stream) -> int:
        return self.db.copy(sql, stream.read(), conn)

    def table_exists(self, table: str) -> bool:
        return table in self.db.tables


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_pg(fake_db):
    return FakePostgres(fake_db)


@pytest.fixture
def copy_parser():
    return parse_copy_text


@pytest.fixture
def make_options(tmp_path):
    """Build LoadOptions with a local spill dir; keyword arguments override defaults."""

    def _make(**overrides):
        values = {
            "table": "sales",
            "connection": PostgresConnectionConfig(host="localhost", database="dw"),
            "spill_dir": str(tmp_path),
        }
        values.update(overrides)
        return LoadOptions(**values)

    return _make
