"""Atomic partition write strategies.

Both strategies run the same two statements per partition (CREATE TABLE IF
NOT EXISTS, then COPY); they differ in what makes a partition all-or-nothing:

* ``StagingTableStrategy``: autocommit statements into a staging table that
  the coordinator renames over the target once every partition succeeded.
  A failed partition drops the staging table.
* ``TransactionStrategy``: both statements run in one transaction at the best
  isolation level the server accepts; commit on success, rollback on failure.
  Partitions write straight to the target, so only each partition is atomic
  and the strategy is limited to append loads.
"""

from abc import ABC, abstractmethod
from typing import IO, Any, Optional

import psycopg2

from copyloader.config import LoadOptions, PartitionStrategy
from copyloader.connections.base import BaseConnection
from copyloader.exceptions import ConnectionError
from copyloader.utils.logging_context import get_logging_context


class PartitionWriteStrategy(ABC):
    """Makes one partition's CREATE + COPY atomic."""

    uses_staging_table = False

    def __init__(self, connection: BaseConnection, options: LoadOptions):
        self.connection = connection
        self.options = options

    def destination_table(self, staging_table: Optional[str]) -> str:
        """Table every partition copies into."""
        return self.options.table

    @abstractmethod
    def begin(self, conn: Any) -> None:
        """Prepare a fresh connection for one partition attempt."""

    def write(self, conn: Any, create_sql: str, copy_sql: str, stream: IO[bytes]) -> int:
        """Ensure the destination exists and stream the spill file into it."""
        self.connection.execute_statement(conn, create_sql)
        return self.connection.copy_in(conn, copy_sql, stream)

    @abstractmethod
    def commit(self, conn: Any) -> None:
        """Make the partition's rows durable."""

    @abstractmethod
    def abort(self, conn: Any, table: str, final_attempt: bool = True) -> None:
        """Best-effort cleanup after a failed attempt. Never raises."""


class StagingTableStrategy(PartitionWriteStrategy):
    """Autocommit writes; overwrite loads go through a shared staging table."""

    uses_staging_table = True

    def destination_table(self, staging_table: Optional[str]) -> str:
        if self.options.is_append or staging_table is None:
            return self.options.table
        return staging_table

    def begin(self, conn: Any) -> None:
        conn.autocommit = True

    def commit(self, conn: Any) -> None:
        pass

    def abort(self, conn: Any, table: str, final_attempt: bool = True) -> None:
        # The table also holds rows of partitions that already succeeded, so it
        # is only dropped once this partition has no attempts left. Partitions
        # still writing recreate it and the coordinator sees the failed count.
        if self.options.is_append or not final_attempt:
            return
        ctx = get_logging_context()
        try:
            self.connection.execute_statement(conn, f"DROP TABLE IF EXISTS {table}")
            ctx.info("Dropped staging table after failed partition", staging_table=table)
        except Exception as e:
            ctx.warning(
                "Failed to drop staging table after failed partition",
                staging_table=table,
                error=str(e),
            )


class TransactionStrategy(PartitionWriteStrategy):
    """One transaction per partition at a negotiated isolation level."""

    def negotiate_isolation_level(self, conn: Any) -> str:
        """Use the first isolation level from the preference list the server accepts."""
        ctx = get_logging_context()
        for level in self.options.isolation_levels:
            try:
                self.connection.execute_statement(conn, f"SET TRANSACTION ISOLATION LEVEL {level}")
                return level
            except psycopg2.Error as e:
                conn.rollback()
                ctx.debug("Isolation level not supported", isolation_level=level, error=str(e))
        raise ConnectionError(
            connection_name=getattr(self.connection, "name", "database"),
            reason=f"None of the isolation levels {self.options.isolation_levels} is supported",
            suggestions=["Add 'READ COMMITTED' to isolation_levels"],
        )

    def begin(self, conn: Any) -> None:
        conn.autocommit = False
        level = self.negotiate_isolation_level(conn)
        get_logging_context().debug("Partition transaction started", isolation_level=level)

    def commit(self, conn: Any) -> None:
        conn.commit()

    def abort(self, conn: Any, table: str, final_attempt: bool = True) -> None:
        try:
            conn.rollback()
        except Exception as e:
            get_logging_context().warning(
                "Rollback failed after failed partition", table=table, error=str(e)
            )


_STRATEGIES = {
    PartitionStrategy.STAGING_TABLE: StagingTableStrategy,
    PartitionStrategy.TRANSACTION: TransactionStrategy,
}


def get_partition_strategy(
    connection: BaseConnection, options: LoadOptions
) -> PartitionWriteStrategy:
    """Strategy selected by ``options.partition_strategy``."""
    return _STRATEGIES[options.partition_strategy](connection, options)
