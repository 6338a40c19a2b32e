"""Command-line interface for packsync."""

from packsync.cli.main import app

__all__ = ["app"]
