"""
Exception taxonomy for textsearch.

Out-of-vocabulary tokens are not errors: they are dropped silently during
vectorization. Everything else that the caller must know about surfaces as
one of the exceptions below.
"""

from __future__ import annotations


class TextSearchError(Exception):
    """Base class for all textsearch errors."""


class IncompatibleConfig(TextSearchError):
    """
    Raised when vocabularies, documents or models built under different
    preprocessing configurations are mixed.

    Args:
        expected: Fingerprint of the configuration already in use.
        found: Fingerprint of the configuration that was offered.
    """

    def __init__(self, expected: str | None, found: str | None, message: str | None = None):
        self.expected = expected
        self.found = found
        super().__init__(
            message or f"incompatible text configuration: expected {expected}, found {found}"
        )


class InvalidParameter(TextSearchError, ValueError):
    """Raised for out-of-range parameters (negative smoothing, ratio outside (0, 1], ...)."""


class CorruptPersistedState(TextSearchError):
    """Raised when a persisted archive is malformed or written by an incompatible version."""


class IOFailure(TextSearchError, OSError):
    """Raised when reading or writing a persisted archive fails at the filesystem level."""


__all__ = [
    "TextSearchError",
    "IncompatibleConfig",
    "InvalidParameter",
    "CorruptPersistedState",
    "IOFailure",
]
