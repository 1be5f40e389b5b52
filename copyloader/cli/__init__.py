"""Command-line interface for copyloader."""
