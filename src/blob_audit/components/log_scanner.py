"""Sequential log scanner with byte-wise resynchronisation."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterator
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import EndOfInputError
from ..core.outcomes import Decoded, Fatal, Skipped
from ..core.types import LogRecord
from .cursor import ByteCursor
from .records import RecordCodec

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    """Counters for one scan.

    Attributes:
        records: Records decoded (including ones hidden by the key filter)
        emitted: Records yielded to the caller
        decode_failures: Offsets at which decoding failed
        failure_runs: Contiguous runs of failing offsets
        next_offset: Offset the scan stopped at
    """

    records: int = 0
    emitted: int = 0
    decode_failures: int = 0
    failure_runs: int = 0
    next_offset: int = 0


class LogScanner:
    """Decode every record of a log file between two offsets.

    Args:
        path: Log file
        codec: Record codec
        start_offset: First offset to decode at (None = 0)
        end_offset: Offset to stop at (None = file length)
        key_filter: Rendered keys to emit; None emits every record

    Invariants:
        - Records are produced in increasing offset order
        - After a decoded record the next attempt starts at
          offset + header size + message size + key size
        - After a failure at offset o the next attempt starts at o + 1
        - The key filter never changes which offsets are visited
    """

    def __init__(
        self,
        path: str | Path,
        codec: RecordCodec,
        start_offset: int | None = None,
        end_offset: int | None = None,
        key_filter: Collection[str] | None = None,
    ):
        self.path = Path(path)
        self.codec = codec
        self.start_offset = start_offset or 0
        self.end_offset = end_offset
        self.key_filter = set(key_filter) if key_filter is not None else None
        self.stats = ScanStats()

    def scan(self) -> Iterator[Decoded | Skipped]:
        """Yield decoded records and skipped offsets in offset order.

        Raises:
            EndOfInputError: If the log ends inside a record or before end_offset
        """
        self.stats = ScanStats(next_offset=self.start_offset)
        with open(self.path, "rb") as f:
            cursor = ByteCursor(f)
            end_offset = cursor.limit if self.end_offset is None else self.end_offset
            current = self.start_offset
            in_failure_run = False
            logger.info(f"Scanning {self.path} from offset {current} to {end_offset}")

            while current < end_offset:
                if current >= cursor.limit:
                    self.stats.next_offset = current
                    logger.error(
                        f"{self.path} ends at offset {cursor.limit}, before end offset {end_offset}"
                    )
                    raise EndOfInputError(current, end_offset - current, 0)

                outcome = self.codec.decode_log_record(cursor, current)

                if isinstance(outcome, Fatal):
                    self.stats.next_offset = current
                    logger.error(f"End of input in {self.path}: {outcome.reason}")
                    raise EndOfInputError(current, outcome.needed, outcome.available)

                if isinstance(outcome, Skipped):
                    self.stats.decode_failures += 1
                    if not in_failure_run:
                        self.stats.failure_runs += 1
                        logger.warning(f"Resynchronising from offset {current}: {outcome.reason}")
                        in_failure_run = True
                    current += 1
                    self.stats.next_offset = current
                    yield outcome
                    continue

                in_failure_run = False
                self.stats.records += 1
                current = outcome.next_offset
                self.stats.next_offset = current
                if self.key_filter is None or outcome.record.key.rendered in self.key_filter:
                    self.stats.emitted += 1
                    yield outcome

            logger.info(
                f"Scan of {self.path} finished at offset {current}: "
                f"{self.stats.records} records, {self.stats.decode_failures} decode failures"
            )

    def records(self) -> Iterator[LogRecord]:
        """Yield only the decoded records."""
        for outcome in self.scan():
            if isinstance(outcome, Decoded):
                yield outcome.record
