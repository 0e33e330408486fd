"""hydrator.core.exceptions

Errors are part of the interface.

Hydration recovers from these; explicit operations surface them.
"""

from __future__ import annotations


class HydratorError(Exception):
    """Base exception for hydrator."""


class ConfigurationError(HydratorError):
    """Configuration is missing or invalid (e.g. no encryption key when one is required)."""


class CodecError(HydratorError):
    """Compressed or encrypted payload could not be decoded."""


class IntegrityError(HydratorError):
    """Stored digest does not match the recovered document."""

    def __init__(self, key: str, expected: str, actual: str):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Integrity check failed for key {key}")


class StoreError(HydratorError):
    """Backend I/O failure."""


class StoreWriteError(StoreError):
    """Backend refused or failed a write."""


class StoreReadError(StoreError):
    """Backend failed a read."""


class NotInitializedError(HydratorError):
    """Operation attempted before initialize() or after dispose()."""


class NotFoundError(HydratorError):
    """Named snapshot does not exist."""
