"""Partitioned row sources.

A partition can be read more than once: a retried task starts again from
the first row, so ``partition(i)`` hands out a fresh iterator on every call.
"""

from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from copyloader.types import TableSchema

Row = Tuple[Any, ...]
PartitionSource = Callable[[], Iterator[Sequence[Any]]]


def _none_if_missing(value: Any) -> Any:
    # pd.isna is elementwise for array-likes; only scalars can be missing here
    if value is None:
        return None
    if np.ndim(value) == 0 and pd.isna(value):
        return None
    return value


class PartitionedDataset:
    """A dataset split into disjoint, independently readable partitions."""

    def __init__(self, sources: List[PartitionSource], schema: Optional[TableSchema] = None):
        self._sources = list(sources)
        self.schema = schema

    @property
    def num_partitions(self) -> int:
        return len(self._sources)

    def partition(self, index: int) -> Iterator[Sequence[Any]]:
        """Fresh iterator over the rows of partition ``index``."""
        return self._sources[index]()

    def row_count(self) -> int:
        return sum(sum(1 for _ in self.partition(i)) for i in range(self.num_partitions))

    @classmethod
    def from_partitions(
        cls, partitions: Sequence[Sequence[Sequence[Any]]], schema: Optional[TableSchema] = None
    ) -> "PartitionedDataset":
        """Wrap in-memory partitions (lists of rows)."""

        def source(rows):
            return lambda: iter(rows)

        return cls([source(rows) for rows in partitions], schema=schema)

    @classmethod
    def from_dataframe(
        cls, df: pd.DataFrame, num_partitions: int = 1, schema: Optional[TableSchema] = None
    ) -> "PartitionedDataset":
        """Split a pandas DataFrame into contiguous partitions.

        NaN / NaT / pd.NA become ``None``; the schema is inferred from the
        dtypes unless one is given.
        """
        if num_partitions < 1:
            raise ValueError("num_partitions must be at least 1")

        schema = schema or TableSchema.from_pandas(df)
        bounds = np.linspace(0, len(df), num_partitions + 1).astype(int)

        def source(start: int, stop: int):
            def rows() -> Iterator[Row]:
                chunk = df.iloc[start:stop]
                for row in chunk.itertuples(index=False, name=None):
                    yield tuple(_none_if_missing(v) for v in row)

            return rows

        sources = [source(int(bounds[i]), int(bounds[i + 1])) for i in range(num_partitions)]
        return cls(sources, schema=schema)
