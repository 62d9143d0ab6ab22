"""Blob state aggregation over index snapshots.

Folds index entries from a replica's snapshot files into per-key liveness,
and tracks the set of active blobs for single-replica extraction.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from sortedcontainers import SortedDict

from ..core.types import (
    Anomaly,
    AnomalyKind,
    BlobStatus,
    IndexEntry,
    RenderedKey,
    ReplicaName,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationResult:
    """Immutable outcome of folding one or more snapshots.

    Attributes:
        statuses: Read-only mapping of rendered key -> BlobStatus
        processed: Index entries folded in
        anomalies: Put-after-delete observations, in fold order
    """

    statuses: Mapping[RenderedKey, BlobStatus] = field(
        default_factory=lambda: MappingProxyType({})
    )
    processed: int = 0
    anomalies: tuple[Anomaly, ...] = ()


EMPTY_AGGREGATION = AggregationResult()


def fold_snapshot(
    state: AggregationResult,
    entries: Iterable[IndexEntry],
    replica: ReplicaName,
    now_ms: int,
) -> AggregationResult:
    """Fold one snapshot's entries for replica into state.

    state is left untouched; the returned result carries the update.
    """
    statuses = dict(state.statuses)
    anomalies = list(state.anomalies)
    processed = state.processed

    for entry in entries:
        processed += 1
        key = entry.key.rendered
        dead = entry.is_deleted_or_expired(now_ms)
        status = statuses.get(key)

        if status is None:
            if dead:
                statuses[key] = BlobStatus(deleted_or_expired=frozenset({replica}))
            else:
                statuses[key] = BlobStatus(available=frozenset({replica}))
        elif dead:
            statuses[key] = BlobStatus(
                available=status.available - {replica},
                deleted_or_expired=status.deleted_or_expired | {replica},
            )
        else:
            if replica in status.deleted_or_expired:
                detail = f"Put Record found after delete record for {replica}"
                anomalies.append(Anomaly(AnomalyKind.PUT_AFTER_DELETE, key, detail))
                logger.warning(f"{detail} (key {key})")
            statuses[key] = BlobStatus(
                available=status.available | {replica},
                deleted_or_expired=status.deleted_or_expired,
            )

    return AggregationResult(MappingProxyType(statuses), processed, tuple(anomalies))


def merge(left: AggregationResult, right: AggregationResult) -> AggregationResult:
    """Combine aggregations of independent replicas by per-key set union."""
    statuses = dict(left.statuses)
    for key, status in right.statuses.items():
        existing = statuses.get(key)
        if existing is None:
            statuses[key] = status
        else:
            statuses[key] = BlobStatus(
                available=existing.available | status.available,
                deleted_or_expired=existing.deleted_or_expired | status.deleted_or_expired,
            )
    return AggregationResult(
        MappingProxyType(statuses),
        left.processed + right.processed,
        left.anomalies + right.anomalies,
    )


class ActiveBlobTracker:
    """Set of currently active blobs for one replica.

    Maps rendered key -> rendered index entry. A key is inserted on its first
    live sighting and removed as soon as a deleted or expired entry is seen.

    Args:
        now_ms: Clock used for expiry checks
        key_filter: Rendered keys to track; None tracks every key

    Invariants:
        - Keys are kept in sorted order, so iteration and sampling indices
          are deterministic for a given input
        - A removed key is never re-inserted; a later put for it is reported
          as a put-after-delete anomaly
        - A second live sighting of a tracked key is a duplicate-put anomaly
    """

    def __init__(self, now_ms: int, key_filter: Collection[str] | None = None):
        self.now_ms = now_ms
        self.key_filter = set(key_filter) if key_filter is not None else None
        self.processed = 0
        self.anomalies: list[Anomaly] = []
        self._active: SortedDict = SortedDict()
        self._removed: set[RenderedKey] = set()

    def add_entries(self, entries: Iterable[IndexEntry]) -> int:
        """Fold entries in; return how many were processed."""
        count = 0
        for entry in entries:
            count += 1
            self._add(entry)
        self.processed += count
        return count

    def _add(self, entry: IndexEntry) -> None:
        key = entry.key.rendered
        if self.key_filter is not None and key not in self.key_filter:
            return

        if entry.is_deleted_or_expired(self.now_ms):
            if self._active.pop(key, None) is not None:
                logger.debug(f"Blob {key} is no longer active")
            self._removed.add(key)
            return

        if key in self._active:
            self._report(AnomalyKind.DUPLICATE_PUT, key, f"Duplicate put record found for {key}")
        elif key in self._removed:
            self._report(AnomalyKind.PUT_AFTER_DELETE, key, f"Put record found after delete for {key}")
        else:
            self._active[key] = entry.describe()

    def _report(self, kind: AnomalyKind, key: RenderedKey, detail: str) -> None:
        self.anomalies.append(Anomaly(kind, key, detail))
        logger.warning(detail)

    @property
    def active(self) -> Mapping[RenderedKey, str]:
        return self._active

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, key: RenderedKey) -> bool:
        return key in self._active
