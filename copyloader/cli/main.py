"""Main CLI entry point."""

import argparse
import sys

from copyloader.cli.load import load_command, validate_command
from copyloader.utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copyloader",
        description="Parallel COPY bulk loader for PostgreSQL and Greenplum",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  copyloader load load.yaml --input sales.parquet --partitions 8
  copyloader load load.yaml --input sales.csv --append
  copyloader validate load.yaml
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--structured-logs", action="store_true", help="Emit JSON log lines instead of text"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # copyloader load
    load_parser = subparsers.add_parser("load", help="Load a file into a table")
    load_parser.add_argument("config", help="Path to YAML config file")
    load_parser.add_argument("--input", required=True, help="CSV or Parquet file to load")
    load_parser.add_argument(
        "--partitions", type=int, default=1, help="Number of parallel partitions (default: 1)"
    )
    load_parser.add_argument(
        "--append", action="store_true", help="Append to the table instead of replacing it"
    )
    load_parser.add_argument("--table", help="Override the target table from the config")
    load_parser.add_argument("--env", default=None, help="Environment override to apply")

    # copyloader validate
    validate_parser = subparsers.add_parser("validate", help="Validate config")
    validate_parser.add_argument("config", help="Path to YAML config file")
    validate_parser.add_argument("--env", default=None, help="Environment override to apply")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(structured=args.structured_logs, level=args.log_level)

    if args.command == "load":
        return load_command(args)
    elif args.command == "validate":
        return validate_command(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
