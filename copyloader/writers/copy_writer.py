"""Per-partition COPY upload.

Each attempt owns one connection and one local spill file:

1. connect
2. encode every row of the partition into the spill file, in order
3. CREATE TABLE IF NOT EXISTS on the destination
4. stream the spill file through COPY FROM STDIN
5. count the success, then close (a close error after success is only logged)
6. remove the spill file and its directory, whatever the outcome

Any failure in 2-4 is cleaned up by the write strategy and re-raised so the
task runner can retry the whole partition.
"""

import os
import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from copyloader.config import LoadOptions
from copyloader.connections.base import BaseConnection
from copyloader.engine.runner import SuccessCounter
from copyloader.serialization import NULL_TOKEN, RowEncoder
from copyloader.types import TableSchema
from copyloader.utils.logging_context import (
    OperationType,
    create_logging_context,
)
from copyloader.writers.strategies import PartitionWriteStrategy


@dataclass
class UploadResult:
    """Result of one successful partition upload."""

    partition_id: int
    rows_written: int
    rows_copied: int
    bytes_spilled: int
    spill_path: str  # removed once the attempt finishes
    attempt: int = 1
    duration: float = 0.0


def copy_sql(table: str, delimiter: str) -> str:
    """COPY statement for the escaped text format written by ``RowEncoder``."""
    literal = delimiter.replace("\\", "\\\\").replace("'", "\\'")
    return f"COPY {table} FROM STDIN WITH NULL AS '{NULL_TOKEN}' DELIMITER AS E'{literal}'"


def create_table_sql(table: str, schema_sql: str, create_table_options: str = "") -> str:
    sql = f"CREATE TABLE IF NOT EXISTS {table} ({schema_sql})"
    if create_table_options:
        sql += f" {create_table_options}"
    return sql


class PartitionUploader:
    """Moves one partition's rows into the destination table as a single unit."""

    def __init__(
        self,
        connection: BaseConnection,
        options: LoadOptions,
        schema: TableSchema,
        table: str,
        schema_sql: str,
        counter: SuccessCounter,
        strategy: PartitionWriteStrategy,
        load_id: Optional[str] = None,
    ):
        self.connection = connection
        self.options = options
        self.schema = schema
        self.table = table
        self.schema_sql = schema_sql
        self.counter = counter
        self.strategy = strategy
        self.load_id = load_id

    @property
    def create_table_sql(self) -> str:
        return create_table_sql(self.table, self.schema_sql, self.options.create_table_options)

    @property
    def copy_sql(self) -> str:
        return copy_sql(self.table, self.options.delimiter)

    def _new_spill_path(self) -> str:
        spill_dir = tempfile.mkdtemp(prefix="copyloader-", dir=self.options.spill_dir)
        return os.path.join(spill_dir, uuid.uuid4().hex)

    def spill(
        self, rows: Iterable[Sequence[Any]], encoder: RowEncoder, path: str
    ) -> Tuple[int, int]:
        """Encode ``rows`` into ``path``. Returns (rows, bytes) written."""
        count = 0
        size = 0
        with open(path, "wb") as out:
            for record in encoder.encode_rows(rows):
                out.write(record)
                count += 1
                size += len(record)
        return count, size

    def upload(
        self, partition_id: int, rows: Iterable[Sequence[Any]], attempt: int = 1
    ) -> UploadResult:
        """Upload one partition. Raises on any failure after cleaning up."""
        ctx = create_logging_context(
            load_id=self.load_id, partition_id=partition_id, table=self.table
        )
        start = time.perf_counter()

        # Validates the delimiter before any I/O
        encoder = RowEncoder(self.schema.types, self.options)

        conn = self.connection.connect()
        committed = False
        spill_path = None
        try:
            self.strategy.begin(conn)

            spill_path = self._new_spill_path()
            with ctx.operation(OperationType.SPILL, spill_path) as metrics:
                rows_written, bytes_spilled = self.spill(rows, encoder, spill_path)
                metrics.rows = rows_written
                metrics.bytes = bytes_spilled

            with open(spill_path, "rb") as stream:
                ctx.info("Start copy stream", attempt=attempt)
                with ctx.operation(OperationType.COPY, self.table) as metrics:
                    rows_copied = self.strategy.write(
                        conn, self.create_table_sql, self.copy_sql, stream
                    )
                    metrics.rows = rows_copied

            self.strategy.commit(conn)
            committed = True
            self.counter.add(1)
        finally:
            if not committed:
                self.strategy.abort(
                    conn, self.table, final_attempt=attempt >= self.options.max_task_attempts
                )
                try:
                    conn.close()
                except Exception as e:
                    ctx.warning("Closing connection after failed partition failed", error=str(e))
            else:
                # The rows are already committed; raising here would trigger a
                # retry that copies them a second time.
                try:
                    conn.close()
                except Exception as e:
                    ctx.warning("Copy succeeded, but closing the connection failed", error=str(e))
            if spill_path is not None:
                shutil.rmtree(os.path.dirname(spill_path), ignore_errors=True)

        return UploadResult(
            partition_id=partition_id,
            rows_written=rows_written,
            rows_copied=rows_copied,
            bytes_spilled=bytes_spilled,
            spill_path=spill_path,
            attempt=attempt,
            duration=time.perf_counter() - start,
        )
