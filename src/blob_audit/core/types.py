"""Common type definitions for the blob store auditor.

Defines the value objects decoded from logs, index snapshots and
replication cursor files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# On-disk primitives
Offset = int
ReplicaName = str
RenderedKey = str

INVALID_RELATIVE_OFFSET = -1
NEVER_EXPIRES = -1
DELETE_FLAG = 0x1


@dataclass(frozen=True)
class StoreKey:
    """Opaque, self-delimiting key produced by a key codec.

    Attributes:
        raw: Encoded bytes exactly as found on disk
        rendered: Stable string form used for filtering and reporting
    """

    raw: bytes
    rendered: RenderedKey

    @property
    def size_in_bytes(self) -> int:
        return len(self.raw)

    def __str__(self) -> str:
        return self.rendered


@dataclass(frozen=True)
class MessageHeader:
    """Fixed-size log message header (version 1)."""

    version: int
    message_size: int
    blob_props_rel_offset: int
    user_metadata_rel_offset: int
    blob_data_rel_offset: int
    crc: int
    size: int

    @property
    def is_put(self) -> bool:
        return self.blob_props_rel_offset != INVALID_RELATIVE_OFFSET


@dataclass(frozen=True)
class BlobProperties:
    ttl_ms: int
    is_private: bool
    creation_time_ms: int
    blob_size: int
    content_type: str
    owner_id: str
    service_id: str


@dataclass(frozen=True)
class LogRecord:
    """One decoded log message: either a put or a delete marker.

    Invariants:
        - is_delete is True exactly when blob_props_rel_offset is invalid
        - put records carry blob_size, service_id and metadata_size
        - delete records carry delete_flag
    """

    offset: Offset
    version: int
    header_size: int
    message_size: int
    blob_props_rel_offset: int
    user_metadata_rel_offset: int
    blob_data_rel_offset: int
    crc: int
    key: StoreKey
    is_delete: bool
    blob_size: int | None = None
    service_id: str | None = None
    metadata_size: int | None = None
    delete_flag: bool | None = None

    @property
    def total_size(self) -> int:
        """Bytes occupied by the record: header + message + encoded key."""
        return self.header_size + self.message_size + self.key.size_in_bytes

    def describe(self) -> str:
        header = (
            f" Header - version {self.version} messagesize {self.message_size}"
            f" currentOffset {self.offset}"
            f" blobPropertiesRelativeOffset {self.blob_props_rel_offset}"
            f" userMetadataRelativeOffset {self.user_metadata_rel_offset}"
            f" dataRelativeOffset {self.blob_data_rel_offset}"
            f" crc {self.crc}"
        )
        if self.is_delete:
            return f"{header}\n Id - {self.key}\ndelete change {self.delete_flag}"
        return (
            f"{header}\n Id - {self.key}\n"
            f" Blob properties - blobSize  {self.blob_size} serviceId {self.service_id}\n"
            f" Metadata - size {self.metadata_size}\n"
            f"Blob - size {self.blob_size}"
        )


@dataclass(frozen=True)
class IndexValue:
    """Fixed-size value region of an index snapshot entry."""

    offset: Offset
    size: int
    original_message_offset: Offset
    flags: int
    expires_at_ms: int

    @property
    def is_deleted(self) -> bool:
        return bool(self.flags & DELETE_FLAG)

    def is_expired(self, now_ms: int) -> bool:
        return 0 <= self.expires_at_ms < now_ms


@dataclass(frozen=True)
class IndexEntry:
    key: StoreKey
    value: IndexValue

    @property
    def log_offset(self) -> Offset:
        return self.value.offset

    def is_deleted_or_expired(self, now_ms: int) -> bool:
        return self.value.is_deleted or self.value.is_expired(now_ms)

    def describe(self) -> str:
        value = self.value
        return (
            f"key {self.key} keySize(in bytes) {self.key.size_in_bytes}"
            f" value - offset {value.offset} size {value.size}"
            f" Original Message Offset {value.original_message_offset}"
            f" Flag {value.is_deleted} LiveUntil {value.expires_at_ms}"
        )


class AnomalyKind(Enum):
    """Logically unexpected but structurally valid observations."""

    PUT_AFTER_DELETE = "put_after_delete"
    KEY_SIZE_MISMATCH = "key_size_mismatch"
    DUPLICATE_PUT = "duplicate_put"
    KEY_MISMATCH = "key_mismatch"


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    key: RenderedKey
    detail: str

    def __str__(self) -> str:
        return self.detail


@dataclass(frozen=True)
class IndexSnapshot:
    """Fully decoded index snapshot file.

    Attributes:
        entries: (key, value) pairs in file order
        crc: Trailer as stored
        crc_valid: Whether the trailer matches the CRC-32 of the preceding bytes
        anomalies: Key size mismatches found while decoding
    """

    path: str
    version: int
    key_size: int
    value_size: int
    file_end_pointer: int
    entries: tuple[IndexEntry, ...]
    crc: int
    crc_valid: bool
    anomalies: tuple[Anomaly, ...] = ()

    @property
    def entry_count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class BlobStatus:
    """Per-key liveness across replicas, scoped to one aggregation run."""

    available: frozenset[ReplicaName] = frozenset()
    deleted_or_expired: frozenset[ReplicaName] = frozenset()

    def describe(self) -> str:
        return (
            f"available {sorted(self.available)}"
            f" deletedOrExpired {sorted(self.deleted_or_expired)}"
        )


@dataclass(frozen=True)
class PartitionId:
    version: int
    id: int

    def __str__(self) -> str:
        return f"Partition[{self.id}]"


@dataclass(frozen=True)
class StoreFindToken:
    """Opaque replication token as decoded by the default token codec."""

    version: int
    session_id: str
    log_offset: int
    index_key: StoreKey | None = None

    def __str__(self) -> str:
        return (
            f"type: StoreFindToken version {self.version} sessionId {self.session_id}"
            f" offset {self.log_offset} indexKey {self.index_key}"
        )


@dataclass(frozen=True)
class ReplicaTokenRecord:
    partition_id: object
    remote_hostname: str
    remote_replica_path: str
    remote_port: int
    total_bytes_read_from_local_store: int
    token: object

    def describe(self) -> str:
        return (
            f"partitionId {self.partition_id} hostname {self.remote_hostname}"
            f" replicaPath {self.remote_replica_path} port {self.remote_port}"
            f" totalBytesReadFromLocalStore {self.total_bytes_read_from_local_store}"
            f" token {self.token}"
        )


@dataclass(frozen=True)
class ReplicaTokenFile:
    path: str
    version: int
    records: tuple[ReplicaTokenRecord, ...] = field(default_factory=tuple)
    crc: int = 0
