"""Exception hierarchy for the blob store auditor.

Defines all custom exceptions used throughout the implementation.
"""

from __future__ import annotations


class AuditError(Exception):
    """Base exception for all auditor errors."""
    pass


class DecodeError(AuditError):
    """Raised when a structure is malformed or carries an unknown version.

    Recoverable while scanning a log (the scanner resynchronises), fatal when
    decoding a whole index snapshot or replication cursor file.
    """

    def __init__(self, message: str, offset: int | None = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class EndOfInputError(AuditError):
    """Raised when fewer bytes remain than a structure requires.

    Always fatal for the scan or read in progress.
    """

    def __init__(self, offset: int, needed: int, available: int):
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"Unexpected end of input at offset {offset}: "
            f"needed {needed} bytes, {available} available"
        )


class ConfigurationError(AuditError):
    """Raised when a required option is missing or inconsistent."""
    pass
