"""Load and validate commands."""

import os

import pandas as pd

from copyloader.config import LoadMode, LoadOptions
from copyloader.coordinator import LoadCoordinator
from copyloader.dataset import PartitionedDataset
from copyloader.exceptions import CopyLoaderException
from copyloader.utils.logging_context import get_logging_context


def read_input(path: str) -> pd.DataFrame:
    """Read a CSV or Parquet file into a DataFrame."""
    ext = os.path.splitext(path)[1].lower()
    if ext in (".parquet", ".pq"):
        return pd.read_parquet(path)
    if ext in (".csv", ".txt"):
        return pd.read_csv(path)
    if ext in (".tsv",):
        return pd.read_csv(path, sep="\t")
    raise ValueError(f"Unsupported input format '{ext}' (expected .csv, .tsv or .parquet)")


def load_command(args) -> int:
    """Execute ``copyloader load``."""
    ctx = get_logging_context()
    try:
        overrides = {}
        if args.append:
            overrides["mode"] = LoadMode.APPEND.value
        if args.table:
            overrides["table"] = args.table
        options = LoadOptions.from_yaml(args.config, env=args.env, overrides=overrides)

        df = read_input(args.input)
        dataset = PartitionedDataset.from_dataframe(df, num_partitions=args.partitions)
        result = LoadCoordinator(options).load(dataset)
    except (CopyLoaderException, FileNotFoundError, ValueError) as e:
        ctx.error(f"Load failed: {e}")
        print(f"\n{e}")
        return 1

    print(
        f"✓ Loaded {result.rows_copied} row(s) into {result.table} "
        f"({result.mode.value}, {result.partitions} partition(s), {result.duration:.2f}s)"
    )
    return 0


def validate_command(args) -> int:
    """Execute ``copyloader validate``."""
    try:
        options = LoadOptions.from_yaml(args.config, env=args.env)
    except (CopyLoaderException, FileNotFoundError, ValueError) as e:
        print(f"✗ {e}")
        return 1

    print(f"✓ Config is valid (table={options.table}, mode={options.mode.value})")
    return 0
