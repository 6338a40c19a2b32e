"""Base exception for packsync.

Each module defines its own exception family deriving from PacksyncError,
so CLI commands can catch the whole family with a single handler.
"""


class PacksyncError(Exception):
    """Base exception for all packsync errors."""
