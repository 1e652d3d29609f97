"""Command-line interface."""

from wallet_history.cli.main import cli

__all__ = ["cli"]
