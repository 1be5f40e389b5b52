"""Load coordination: fan out partition uploads, then promote or clean up.

The only signal of overall success is the ``SuccessCounter``: after every
partition task has settled (retries included) its value must equal the
partition count. In overwrite mode the staging table is then renamed over
the target; otherwise it is dropped and the target is left as it was.

Delivery is at-least-once per partition. A task whose COPY committed on the
server but which failed before reporting success is retried and copies its
rows again. In append mode partitions that did commit stay in the target
even when the load as a whole fails.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional

from copyloader.config import LoadMode, LoadOptions
from copyloader.connections.base import BaseConnection
from copyloader.connections.factory import connection_from_config
from copyloader.connections.postgres import rename_target_name
from copyloader.dataset import PartitionedDataset
from copyloader.engine.runner import PartitionTaskRunner, SuccessCounter
from copyloader.exceptions import ConfigValidationError, LoadCoordinationError
from copyloader.schema import schema_string
from copyloader.serialization import RowEncoder
from copyloader.types import TableSchema
from copyloader.utils.logging_context import (
    LoggingContext,
    OperationType,
    create_logging_context,
)
from copyloader.writers.copy_writer import PartitionUploader, UploadResult, create_table_sql
from copyloader.writers.strategies import PartitionWriteStrategy, get_partition_strategy


@dataclass
class LoadResult:
    """Result of a completed load."""

    table: str
    mode: LoadMode
    partitions: int
    successful_tasks: int
    staging_table: Optional[str] = None
    partition_results: List[UploadResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def rows_written(self) -> int:
        return sum(r.rows_written for r in self.partition_results)

    @property
    def rows_copied(self) -> int:
        return sum(r.rows_copied for r in self.partition_results)


def staging_table_name(table: str) -> str:
    """Target name plus a random suffix (uuid hex has no separators).

    A quoted target keeps the suffix inside its quotes.
    """
    suffix = uuid.uuid4().hex
    if table.endswith('"'):
        return table[:-1] + suffix + '"'
    return table + suffix


class LoadCoordinator:
    """Drives one bulk load and makes the final promote-or-cleanup decision."""

    def __init__(
        self,
        options: LoadOptions,
        connection: Optional[BaseConnection] = None,
        strategy: Optional[PartitionWriteStrategy] = None,
        runner: Optional[PartitionTaskRunner] = None,
    ):
        self.options = options
        self.connection = connection or connection_from_config(options.connection)
        self.strategy = strategy or get_partition_strategy(self.connection, options)
        self.runner = runner or PartitionTaskRunner(
            max_workers=options.max_workers, max_attempts=options.max_task_attempts
        )

    def load(self, dataset: PartitionedDataset, schema: Optional[TableSchema] = None) -> LoadResult:
        """Load every partition of ``dataset`` into ``options.table``.

        Raises:
            ConfigValidationError: Bad options or schema, before any I/O
            LoadCoordinationError: Not every partition succeeded, or promotion failed
        """
        options = self.options
        schema = schema or dataset.schema
        if schema is None or len(schema) == 0:
            raise ConfigValidationError("A non-empty schema is required to load a dataset")

        # Fail on a bad delimiter or bad type overrides before touching the database
        RowEncoder(schema.types, options)
        schema_sql = schema_string(schema, options.create_table_column_types)

        load_id = uuid.uuid4().hex[:8]
        ctx = create_logging_context(load_id=load_id, table=options.table)
        start = time.perf_counter()

        num_partitions = dataset.num_partitions
        staging_table = None
        if not options.is_append and self.strategy.uses_staging_table:
            staging_table = staging_table_name(options.table)
        destination = self.strategy.destination_table(staging_table)

        ctx.info(
            "Starting COPY load",
            mode=options.mode.value,
            partitions=num_partitions,
            destination=destination,
            strategy=options.partition_strategy.value,
        )
        if options.is_append and not self.connection.table_exists(options.table):
            ctx.info("Target table does not exist yet; the first partition creates it")

        if num_partitions == 0 and staging_table:
            # Nothing will create the staging table; promote an empty one
            self._execute(create_table_sql(staging_table, schema_sql, options.create_table_options))

        counter = SuccessCounter()
        uploader = PartitionUploader(
            connection=self.connection,
            options=options,
            schema=schema,
            table=destination,
            schema_sql=schema_sql,
            counter=counter,
            strategy=self.strategy,
            load_id=load_id,
        )

        def task(partition_id: int, attempt: int) -> UploadResult:
            return uploader.upload(partition_id, dataset.partition(partition_id), attempt)

        summary = self.runner.run(num_partitions, task)
        succeeded = counter.value

        if succeeded != num_partitions:
            if staging_table:
                self._drop_quietly(staging_table, ctx)
            first_failure = summary.first_failure()
            error = LoadCoordinationError(
                table=options.table,
                message="not every partition was copied",
                expected=num_partitions,
                succeeded=succeeded,
                failures=[summary.failures[p] for p in summary.failed_partitions],
            )
            ctx.error(
                "COPY load failed",
                expected=num_partitions,
                succeeded=succeeded,
                failed_partitions=summary.failed_partitions,
            )
            if first_failure is not None:
                raise error from first_failure.original_error
            raise error

        if staging_table:
            self.promote(staging_table, ctx)

        result = LoadResult(
            table=options.table,
            mode=options.mode,
            partitions=num_partitions,
            successful_tasks=succeeded,
            staging_table=staging_table,
            partition_results=[summary.results[p] for p in sorted(summary.results)],
            duration=time.perf_counter() - start,
        )
        ctx.info(
            "COPY load completed",
            partitions=num_partitions,
            rows=result.rows_copied,
            duration_s=round(result.duration, 3),
        )
        return result

    def promote(self, staging_table: str, ctx: Optional[LoggingContext] = None) -> None:
        """Replace the target with the staging table.

        DROP and RENAME share one transaction, so a failed rename leaves the
        old target in place. The staging table is dropped on failure.
        """
        ctx = ctx or create_logging_context(table=self.options.table)
        target = self.options.table
        target_name = rename_target_name(target)

        conn = self.connection.connect()
        committed = False
        try:
            with ctx.operation(OperationType.PROMOTE, f"{staging_table} -> {target}"):
                conn.autocommit = False
                self.connection.execute_statement(conn, f"DROP TABLE IF EXISTS {target}")
                self.connection.execute_statement(
                    conn, f"ALTER TABLE {staging_table} RENAME TO {target_name}"
                )
                conn.commit()
                committed = True
        except Exception as e:
            try:
                conn.rollback()
            except Exception as rollback_error:
                ctx.warning("Rollback after failed promotion failed", error=str(rollback_error))
            self._drop_quietly(staging_table, ctx)
            raise LoadCoordinationError(
                table=target, message=f"promoting {staging_table} failed: {e}"
            ) from e
        finally:
            try:
                conn.close()
            except Exception as e:
                ctx.warning(
                    "Closing the promotion connection failed", committed=committed, error=str(e)
                )

    def _execute(self, sql: str) -> None:
        conn = self.connection.connect()
        try:
            conn.autocommit = True
            self.connection.execute_statement(conn, sql)
        finally:
            conn.close()

    def _drop_quietly(self, table: str, ctx: LoggingContext) -> None:
        """Best-effort DROP TABLE IF EXISTS; failures are logged."""
        try:
            with ctx.operation(OperationType.CLEANUP, table):
                self._execute(f"DROP TABLE IF EXISTS {table}")
            ctx.info("Dropped staging table", staging_table=table)
        except Exception as e:
            ctx.warning("Could not drop staging table", staging_table=table, error=str(e))


def copy_to_database(
    dataset: PartitionedDataset,
    options: LoadOptions,
    schema: Optional[TableSchema] = None,
    connection: Optional[Any] = None,
) -> LoadResult:
    """Load ``dataset`` with ``options``; convenience wrapper around LoadCoordinator."""
    return LoadCoordinator(options, connection=connection).load(dataset, schema)
