"""Encoders for the formats the auditor reads.

The auditor never writes store files; these helpers produce sample logs,
index snapshots and replica token files for tests and the demo driver.
"""

from __future__ import annotations

import struct
import zlib
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ..core.types import DELETE_FLAG, INVALID_RELATIVE_OFFSET, NEVER_EXPIRES
from ..interfaces.codec import KeyCodec
from .index_reader import INDEX_HEADER, INDEX_VERSION_V0
from .records import (
    BLOB_PROPERTIES_V1,
    BLOB_V1,
    DELETE_V1,
    MESSAGE_HEADER_V1,
    USER_METADATA_V1,
)
from .replica_token import (
    PARTITION_VERSION_V1,
    REPLICA_TOKEN_VERSION_V0,
    STORE_FIND_TOKEN_VERSION_V0,
)


def _string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack(">i", len(raw)) + raw


def _with_crc(payload: bytes) -> bytes:
    return payload + struct.pack(">q", zlib.crc32(payload))


def encode_blob_properties(
    blob_size: int,
    service_id: str = "audit-service",
    ttl_ms: int = NEVER_EXPIRES,
    is_private: bool = False,
    creation_time_ms: int = 0,
    content_type: str = "application/octet-stream",
    owner_id: str = "owner",
) -> bytes:
    payload = struct.pack(">hqbqq", BLOB_PROPERTIES_V1, ttl_ms, int(is_private), creation_time_ms, blob_size)
    payload += _string(content_type) + _string(owner_id) + _string(service_id)
    return _with_crc(payload)


def encode_user_metadata(metadata: bytes) -> bytes:
    return _with_crc(struct.pack(">hi", USER_METADATA_V1, len(metadata)) + metadata)


def encode_blob(data: bytes) -> bytes:
    return _with_crc(struct.pack(">hq", BLOB_V1, len(data)) + data)


def encode_delete_record(flag: bool = True) -> bytes:
    return _with_crc(struct.pack(">hb", DELETE_V1, int(flag)))


def encode_header(
    message_size: int, props_rel: int, metadata_rel: int, data_rel: int
) -> bytes:
    fields = struct.pack(">hqqqq", MESSAGE_HEADER_V1, message_size, props_rel, metadata_rel, data_rel)
    return fields + struct.pack(">q", zlib.crc32(fields))


def encode_put_record(
    key_codec: KeyCodec,
    key: str,
    data: bytes,
    metadata: bytes = b"",
    service_id: str = "audit-service",
) -> bytes:
    """Encode header + key + properties + metadata + blob."""
    props = encode_blob_properties(len(data), service_id=service_id)
    meta = encode_user_metadata(metadata)
    blob = encode_blob(data)
    body = props + meta + blob
    header = encode_header(len(body), 0, len(props), len(props) + len(meta))
    return header + key_codec.encode_key(key) + body


def encode_delete(key_codec: KeyCodec, key: str) -> bytes:
    """Encode header + key + delete record."""
    body = encode_delete_record(True)
    header = encode_header(
        len(body), INVALID_RELATIVE_OFFSET, INVALID_RELATIVE_OFFSET, INVALID_RELATIVE_OFFSET
    )
    return header + key_codec.encode_key(key) + body


@dataclass
class IndexValueSpec:
    """Value fields of an index entry to encode."""

    offset: int
    size: int
    deleted: bool = False
    expires_at_ms: int = NEVER_EXPIRES
    original_message_offset: int = -1

    @property
    def flags(self) -> int:
        return DELETE_FLAG if self.deleted else 0


def encode_index_value(value: IndexValueSpec, value_size: int) -> bytes:
    if value_size == 24:
        return struct.pack(">qiiq", value.offset, value.size, value.flags, value.expires_at_ms)
    if value_size == 25:
        return struct.pack(">qqbq", value.size, value.offset, value.flags, value.expires_at_ms)
    if value_size == 33:
        return struct.pack(
            ">qqbqq",
            value.size,
            value.offset,
            value.flags,
            value.expires_at_ms,
            value.original_message_offset,
        )
    raise ValueError(f"No index value layout of {value_size} bytes")


def encode_index(
    key_codec: KeyCodec,
    entries: Iterable[tuple[str, IndexValueSpec]],
    key_size: int,
    value_size: int = 33,
    file_end_pointer: int = 0,
    version: int = INDEX_VERSION_V0,
) -> bytes:
    payload = INDEX_HEADER.pack(version, key_size, value_size, file_end_pointer)
    for key, value in entries:
        payload += key_codec.encode_key(key) + encode_index_value(value, value_size)
    return _with_crc(payload)


@dataclass
class ReplicaTokenSpec:
    partition: int
    hostname: str
    replica_path: str
    port: int
    total_bytes_read: int
    session_id: str
    log_offset: int
    index_key: str | None = None


def encode_replica_tokens(
    key_codec: KeyCodec,
    tokens: Iterable[ReplicaTokenSpec],
    version: int = REPLICA_TOKEN_VERSION_V0,
) -> bytes:
    payload = struct.pack(">h", version)
    for token in tokens:
        payload += struct.pack(">hq", PARTITION_VERSION_V1, token.partition)
        payload += _string(token.hostname) + _string(token.replica_path)
        payload += struct.pack(">iq", token.port, token.total_bytes_read)
        payload += struct.pack(">h", STORE_FIND_TOKEN_VERSION_V0) + _string(token.session_id)
        payload += struct.pack(">q", token.log_offset)
        if token.index_key is None:
            payload += struct.pack(">b", 0)
        else:
            payload += struct.pack(">b", 1) + key_codec.encode_key(token.index_key)
    return _with_crc(payload)


def write_file(path: str | Path, data: bytes) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path

