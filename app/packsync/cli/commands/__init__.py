"""CLI command implementations."""

from packsync.cli.commands import doctor, plan, status, trust

__all__ = ["doctor", "plan", "status", "trust"]
