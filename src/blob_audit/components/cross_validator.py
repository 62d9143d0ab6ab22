"""Index to log cross-validation.

Checks that every index entry points at a decodable log record carrying
the same key.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from ..core.outcomes import Decoded
from ..core.types import Anomaly, AnomalyKind, IndexEntry, LogRecord
from .cursor import ByteCursor
from .records import RecordCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryCheck:
    """Result of checking one index entry against the log.

    Attributes:
        entry: Index entry checked
        record: Record decoded at the entry's offset, if any
        reason: Why the check failed; None on success
    """

    entry: IndexEntry
    record: LogRecord | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class CrossValidationReport:
    checked: int = 0
    matched: int = 0
    failures: list[EntryCheck] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)


class LogIndexCrossValidator:
    """Seek the log at each index entry's offset and compare keys.

    Args:
        log_path: Log file the index describes
        codec: Record codec

    Invariants:
        - Exactly one decode attempt per entry, at the stored offset
        - A failing entry never stops the run
        - Neither file is modified
    """

    def __init__(self, log_path: str | Path, codec: RecordCodec):
        self.log_path = Path(log_path)
        self.codec = codec

    def check(self, entries: Iterable[IndexEntry]) -> Iterator[EntryCheck]:
        with open(self.log_path, "rb") as f:
            cursor = ByteCursor(f)
            for entry in entries:
                yield self._check_entry(cursor, entry)

    def _check_entry(self, cursor: ByteCursor, entry: IndexEntry) -> EntryCheck:
        offset = entry.log_offset
        if offset < 0 or offset >= cursor.limit:
            return EntryCheck(entry, reason=f"Offset {offset} is outside the log (size {cursor.limit})")

        outcome = self.codec.decode_log_record(cursor, offset)
        if not isinstance(outcome, Decoded):
            return EntryCheck(
                entry,
                reason=f"Failed to parse log for blob {entry.key} at offset {offset}: {outcome.reason}",
            )

        record = outcome.record
        if record.key != entry.key:
            return EntryCheck(
                entry,
                record,
                reason=(
                    f"BlobId did not match the index value. BlobId from index {entry.key},"
                    f" blobid in log {record.key}"
                ),
            )
        return EntryCheck(entry, record)

    def validate(self, entries: Iterable[IndexEntry]) -> CrossValidationReport:
        """Check every entry and collect the failures."""
        report = CrossValidationReport()
        for result in self.check(entries):
            report.checked += 1
            if result.ok:
                report.matched += 1
                continue
            report.failures.append(result)
            if result.record is not None:
                report.anomalies.append(
                    Anomaly(AnomalyKind.KEY_MISMATCH, result.entry.key.rendered, result.reason)
                )
            logger.warning(result.reason)

        logger.info(
            f"Cross-validated {report.checked} index entries against {self.log_path}: "
            f"{len(report.failures)} failures"
        )
        return report
