"""Auditor operations - main public API.

Orchestrates the readers, scanner, aggregator, sampler and cross-validator
and writes their findings to a report sink.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..components.aggregator import (
    EMPTY_AGGREGATION,
    ActiveBlobTracker,
    AggregationResult,
    fold_snapshot,
    merge,
)
from ..components.catalog import ReplicaIndexCatalog
from ..components.cross_validator import CrossValidationReport, LogIndexCrossValidator
from ..components.index_reader import IndexReader
from ..components.keys import make_key_codec
from ..components.log_scanner import LogScanner, ScanStats
from ..components.records import RecordCodec
from ..components.replica_token import default_token_reader
from ..components.sampler import BlobSampler
from ..interfaces.codec import KeyCodec
from ..interfaces.sink import ReportSink
from . import config as ops
from .config import DumpConfig
from .errors import DecodeError
from .outcomes import Decoded
from .types import Anomaly, IndexSnapshot, ReplicaTokenFile

logger = logging.getLogger(__name__)

UNKNOWN_REPLICA = "Not Known"


@dataclass
class ActiveBlobReport:
    processed: int = 0
    active: dict[str, str] = field(default_factory=dict)
    anomalies: list[Anomaly] = field(default_factory=list)
    sampled: list[str] = field(default_factory=list)


class DataDumper:
    """Runs auditor operations against store files.

    Args:
        config: Validated run configuration
        sink: Report destination
        key_codec: Overrides the codec named in config
        now_ms: Clock for expiry checks (defaults to the current time)
        rng: Random generator for sampling (defaults to one seeded from config.seed)

    Public API:
        - dump_index(path)
        - dump_indexes_for_replica(replica_dir)
        - dump_active_blobs_from_index(path)
        - dump_active_blobs_for_replica(replica_dir)
        - dump_n_random_active_blobs_for_replica(replica_dir, count)
        - dump_log(path, start_offset, end_offset)
        - dump_replica_token(path)
        - compare_index_to_log(index_path, log_path)
        - dump_blob_status(replica_dirs)
        - run(): dispatch on config.operation
    """

    def __init__(
        self,
        config: DumpConfig,
        sink: ReportSink,
        key_codec: KeyCodec | None = None,
        now_ms: int | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.sink = sink
        self.key_codec = key_codec or make_key_codec(config.key_codec, config.key_width)
        self.codec = RecordCodec(self.key_codec)
        self.index_reader = IndexReader(self.codec)
        self.now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        self.rng = rng or random.Random(config.seed)
        self.blob_filter = config.blob_ids if config.blob_ids else None

    def run(self) -> object:
        """Execute the configured operation and return its report."""
        cfg = self.config
        cfg.validate()
        logger.info(f"Running {cfg.operation}")

        if cfg.operation == ops.DUMP_INDEX:
            return self.dump_index(cfg.file_to_read)
        if cfg.operation == ops.DUMP_INDEXES_FOR_REPLICA:
            return self.dump_indexes_for_replica(cfg.replica_root_directory)
        if cfg.operation == ops.DUMP_ACTIVE_BLOBS_FROM_INDEX:
            return self.dump_active_blobs_from_index(cfg.file_to_read)
        if cfg.operation == ops.DUMP_ACTIVE_BLOBS_FOR_REPLICA:
            return self.dump_active_blobs_for_replica(cfg.replica_root_directory)
        if cfg.operation == ops.DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA:
            return self.dump_n_random_active_blobs_for_replica(
                cfg.replica_root_directory, cfg.active_blobs_count
            )
        if cfg.operation == ops.DUMP_LOG:
            return self.dump_log(cfg.file_to_read, cfg.start_offset, cfg.end_offset)
        if cfg.operation == ops.DUMP_REPLICA_TOKEN:
            return self.dump_replica_token(cfg.file_to_read)
        if cfg.operation == ops.COMPARE_INDEX_TO_LOG:
            return self.compare_index_to_log(cfg.file_to_read, cfg.log_file)
        return self.dump_blob_status(cfg.replica_directories)

    # Index operations

    def _catalog(self, replica_dir: str | Path) -> ReplicaIndexCatalog:
        return ReplicaIndexCatalog(replica_dir, self.config.index_suffix, self.config.file_order)

    def _describe_snapshot_header(self, snapshot: IndexSnapshot, replica: str | None) -> None:
        self.sink.misc(f"Dumping index {Path(snapshot.path).name} for {replica}")
        self.sink.misc(f"version {snapshot.version}")
        self.sink.misc(f"key size {snapshot.key_size}")
        self.sink.misc(f"value size {snapshot.value_size}")
        self.sink.misc(f"file end pointer {snapshot.file_end_pointer}")

    def _read_snapshot(self, path: str | Path) -> IndexSnapshot | None:
        """Read a snapshot that is one of several; a bad version skips the file."""
        try:
            return self.index_reader.read(path)
        except DecodeError as e:
            logger.error(f"Skipping index file {path}: {e}")
            self.sink.misc(f"Skipping index file {Path(path).name}: {e}")
            return None

    def dump_index(self, path: str | Path, replica: str | None = None) -> IndexSnapshot:
        snapshot = self.index_reader.read(path)
        self._describe_snapshot_header(snapshot, replica or UNKNOWN_REPLICA)

        for entry in snapshot.entries:
            if self.blob_filter is None or entry.key.rendered in self.blob_filter:
                self.sink.emit(entry.describe())
        for anomaly in snapshot.anomalies:
            self.sink.misc(str(anomaly))

        self.sink.misc(f"crc {snapshot.crc}")
        if not snapshot.crc_valid:
            self.sink.misc(f"crc mismatch for {Path(snapshot.path).name}")
        self.sink.misc(f"Total number of keys processed {snapshot.entry_count}")
        return snapshot

    def dump_indexes_for_replica(self, replica_dir: str | Path) -> int:
        catalog = self._catalog(replica_dir)
        self.sink.misc(f"Root directory for replica : {replica_dir}")

        total = 0
        for path in catalog.list_index_files():
            try:
                total += self.dump_index(path, catalog.replica_name).entry_count
            except DecodeError as e:
                logger.error(f"Skipping index file {path}: {e}")
                self.sink.misc(f"Skipping index file {path.name}: {e}")

        self.sink.misc(f"Total Keys processed for replica {catalog.replica_name} : {total}")
        return total

    def _fold_active(self, tracker: ActiveBlobTracker, path: Path, replica: str, verbose: bool) -> None:
        snapshot = self._read_snapshot(path)
        if snapshot is None:
            return
        if verbose:
            self._describe_snapshot_header(snapshot, replica or UNKNOWN_REPLICA)

        anomalies_before = len(tracker.anomalies)
        tracker.add_entries(snapshot.entries)

        if verbose:
            for anomaly in tracker.anomalies[anomalies_before:]:
                self.sink.misc(str(anomaly))
            for anomaly in snapshot.anomalies:
                self.sink.misc(str(anomaly))
            self.sink.misc(f"crc {snapshot.crc}")
            self.sink.misc(f"Total number of keys processed {snapshot.entry_count}")
        else:
            logger.info(f"Folded {snapshot.entry_count} entries from {path}")

    def _report_active(self, tracker: ActiveBlobTracker) -> ActiveBlobReport:
        return ActiveBlobReport(tracker.processed, dict(tracker.active), list(tracker.anomalies))

    def dump_active_blobs_from_index(self, path: str | Path) -> ActiveBlobReport:
        tracker = ActiveBlobTracker(self.now_ms, self.blob_filter)
        self._fold_active(tracker, Path(path), UNKNOWN_REPLICA, verbose=True)

        for key, description in tracker.active.items():
            self.sink.emit(f"{key} : {description}")
        self.sink.misc(f"Total Keys processed {tracker.processed}")
        return self._report_active(tracker)

    def dump_active_blobs_for_replica(self, replica_dir: str | Path) -> ActiveBlobReport:
        catalog = self._catalog(replica_dir)
        tracker = ActiveBlobTracker(self.now_ms, self.blob_filter)
        for path in catalog.list_index_files():
            self._fold_active(tracker, path, catalog.replica_name, verbose=True)

        for key, description in tracker.active.items():
            self.sink.emit(f"{key} : {description}")
        self.sink.misc(
            f"Total Keys processed for replica {catalog.replica_name} : {tracker.processed}"
        )
        return self._report_active(tracker)

    def dump_n_random_active_blobs_for_replica(
        self, replica_dir: str | Path, count: int
    ) -> ActiveBlobReport:
        catalog = self._catalog(replica_dir)
        tracker = ActiveBlobTracker(self.now_ms, self.blob_filter)
        for path in catalog.list_index_files():
            self._fold_active(tracker, path, catalog.replica_name, verbose=False)

        self.sink.misc(
            f"Total Keys processed for replica {catalog.replica_name} : {tracker.processed}"
        )
        size = min(count, len(tracker))
        self.sink.misc(f"Total keys to be dumped {size}")

        sampler = BlobSampler(self.config.sample_strategy, self.rng)
        report = self._report_active(tracker)
        for key in sampler.sample(tracker.active.keys(), count):
            report.sampled.append(key)
            self.sink.emit(tracker.active[key])
        return report

    def dump_blob_status(self, replica_dirs: Sequence[str | Path]) -> AggregationResult:
        """Per-key replica availability across several replicas of one partition."""
        combined = EMPTY_AGGREGATION
        for replica_dir in replica_dirs:
            catalog = self._catalog(replica_dir)
            replica_result = EMPTY_AGGREGATION
            for path in catalog.list_index_files():
                snapshot = self._read_snapshot(path)
                if snapshot is None:
                    continue
                entries = snapshot.entries
                if self.blob_filter is not None:
                    entries = [e for e in entries if e.key.rendered in self.blob_filter]
                replica_result = fold_snapshot(
                    replica_result, entries, catalog.replica_name, self.now_ms
                )
            self.sink.misc(
                f"Total Keys processed for replica {catalog.replica_name} : {replica_result.processed}"
            )
            combined = merge(combined, replica_result)

        for anomaly in combined.anomalies:
            self.sink.misc(f"{anomaly} (key {anomaly.key})")
        for key in sorted(combined.statuses):
            self.sink.emit(f"{key} : {combined.statuses[key].describe()}")
        self.sink.misc(f"Total Keys processed {combined.processed}")
        return combined

    # Log operations

    def dump_log(
        self, path: str | Path, start_offset: int | None = None, end_offset: int | None = None
    ) -> ScanStats:
        """Dump every record in the log, resynchronising over corrupt regions.

        Raises:
            EndOfInputError: If the log ends inside a record; records already
                written to the sink are kept
        """
        self.sink.misc("Dumping log")
        self.sink.misc(f"Starting dumping from offset {start_offset or 0}")
        scanner = LogScanner(path, self.codec, start_offset, end_offset, self.blob_filter)

        last_failed = False
        for outcome in scanner.scan():
            if isinstance(outcome, Decoded):
                last_failed = False
                self.sink.emit(outcome.record.describe())
            elif not last_failed:
                last_failed = True
                self.sink.misc(outcome.reason)

        stats = scanner.stats
        self.sink.misc(
            f"Records {stats.records} decode failures {stats.decode_failures}"
            f" ended at offset {stats.next_offset}"
        )
        return stats

    def dump_replica_token(self, path: str | Path) -> ReplicaTokenFile:
        self.sink.misc("Dumping replica token")
        tokens = default_token_reader(self.key_codec).read(path)
        for record in tokens.records:
            self.sink.emit(record.describe())
        self.sink.misc(f"crc {tokens.crc}")
        return tokens

    def compare_index_to_log(self, index_path: str | Path, log_path: str | Path) -> CrossValidationReport:
        self.sink.misc("Comparing Index entries to Log")
        snapshot = self.index_reader.read(index_path)
        self.sink.misc(f"version {snapshot.version}")
        self.sink.misc(f"key size {snapshot.key_size}")
        self.sink.misc(f"value size {snapshot.value_size}")
        self.sink.misc(f"file end pointer {snapshot.file_end_pointer}")

        validator = LogIndexCrossValidator(log_path, self.codec)
        report = validator.validate(snapshot.entries)
        for failure in report.failures:
            self.sink.emit(f"Failed for Index Entry {failure.entry.describe()}: {failure.reason}")

        self.sink.misc(f"crc {snapshot.crc}")
        self.sink.misc(
            f"Checked {report.checked} index entries, {report.matched} matched,"
            f" {len(report.failures)} failed"
        )
        return report
