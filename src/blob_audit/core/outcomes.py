"""Result types for single-record decode attempts.

A log decode attempt either produced a record, hit a recoverable failure at
an offset, or ran out of input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .types import LogRecord, Offset


@dataclass(frozen=True)
class Decoded:
    record: LogRecord
    offset: Offset
    next_offset: Offset


@dataclass(frozen=True)
class Skipped:
    """Recoverable failure: malformed structure or unsupported version."""

    reason: str
    offset: Offset


@dataclass(frozen=True)
class Fatal:
    """End of input reached inside a structure that had started."""

    reason: str
    offset: Offset
    needed: int = 0
    available: int = 0


DecodeOutcome = Union[Decoded, Skipped, Fatal]
