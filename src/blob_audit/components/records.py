"""Versioned record decoding.

Decodes log message headers, the put/delete sub-records that follow them,
and index snapshot entries. Every structure starts with a 2 byte version.
"""

from __future__ import annotations

import logging
import struct
import zlib

from ..core.errors import DecodeError, EndOfInputError
from ..core.outcomes import Decoded, DecodeOutcome, Fatal, Skipped
from ..core.types import (
    Anomaly,
    AnomalyKind,
    BlobProperties,
    IndexEntry,
    IndexValue,
    LogRecord,
    MessageHeader,
)
from ..interfaces.codec import KeyCodec
from .cursor import ByteCursor

logger = logging.getLogger(__name__)

VERSION_SIZE = 2

# Message header v1:
# [version (2B)] [message_size (8B)] [props_rel (8B)] [metadata_rel (8B)] [data_rel (8B)] [crc (8B)]
MESSAGE_HEADER_V1 = 1
HEADER_V1 = struct.Struct(">hqqqqq")
HEADER_V1_SIZE = HEADER_V1.size
_HEADER_V1_CRC_START = HEADER_V1_SIZE - 8

BLOB_PROPERTIES_V1 = 1
USER_METADATA_V1 = 1
BLOB_V1 = 1
DELETE_V1 = 1

# Index value layouts, keyed by the value size declared in the snapshot header
# compact (24B): [offset (8B)] [size (4B)] [flags (4B)] [expires_at_ms (8B)]
# v0 (25B):      [size (8B)] [offset (8B)] [flags (1B)] [expires_at_ms (8B)]
# v1 (33B):      v0 + [original_message_offset (8B)]
_VALUE_COMPACT = struct.Struct(">qiiq")
_VALUE_V0 = struct.Struct(">qqbq")
_VALUE_V1 = struct.Struct(">qqbqq")


def _decode_compact_value(raw: bytes) -> IndexValue:
    offset, size, flags, expires_at_ms = _VALUE_COMPACT.unpack(raw)
    return IndexValue(offset, size, -1, flags, expires_at_ms)


def _decode_v0_value(raw: bytes) -> IndexValue:
    size, offset, flags, expires_at_ms = _VALUE_V0.unpack(raw)
    return IndexValue(offset, size, -1, flags, expires_at_ms)


def _decode_v1_value(raw: bytes) -> IndexValue:
    size, offset, flags, expires_at_ms, original = _VALUE_V1.unpack(raw)
    return IndexValue(offset, size, original, flags, expires_at_ms)


INDEX_VALUE_LAYOUTS = {
    _VALUE_COMPACT.size: _decode_compact_value,
    _VALUE_V0.size: _decode_v0_value,
    _VALUE_V1.size: _decode_v1_value,
}


class RecordCodec:
    """Decoder for one typed record at a time.

    Args:
        key_codec: Codec for the variable-length keys embedded in records

    Invariants:
        - DecodeError means the bytes are not a valid record here
        - EndOfInputError means the input ended inside a started record
    """

    def __init__(self, key_codec: KeyCodec):
        self.key_codec = key_codec

    def _expect_version(self, cursor: ByteCursor, expected: int, what: str) -> None:
        start = cursor.position
        version = cursor.read_int16()
        if version != expected:
            raise DecodeError(f"{what} version {version} not supported", start)

    def _check_crc(self, cursor: ByteCursor, computed: int, what: str) -> None:
        start = cursor.position
        stored = cursor.read_int64()
        if stored != computed:
            raise DecodeError(
                f"{what} CRC mismatch: expected {computed:x}, got {stored:x}", start
            )

    def decode_header(self, cursor: ByteCursor) -> MessageHeader:
        start = cursor.position
        raw = cursor.read(HEADER_V1_SIZE)
        version, message_size, props_rel, metadata_rel, data_rel, crc = HEADER_V1.unpack(raw)
        if version != MESSAGE_HEADER_V1:
            raise DecodeError(f"Header version {version} not supported", start)
        computed = zlib.crc32(raw[:_HEADER_V1_CRC_START])
        if crc != computed:
            raise DecodeError(
                f"Header CRC mismatch: expected {computed:x}, got {crc:x}", start
            )
        if message_size < 0:
            raise DecodeError(f"Negative message size {message_size}", start)
        return MessageHeader(
            version, message_size, props_rel, metadata_rel, data_rel, crc, HEADER_V1_SIZE
        )

    def decode_blob_properties(self, cursor: ByteCursor) -> BlobProperties:
        cursor.begin_checksum()
        try:
            self._expect_version(cursor, BLOB_PROPERTIES_V1, "Blob properties")
            ttl_ms = cursor.read_int64()
            is_private = cursor.read_int8() != 0
            creation_time_ms = cursor.read_int64()
            blob_size = cursor.read_int64()
            content_type = cursor.read_string()
            owner_id = cursor.read_string()
            service_id = cursor.read_string()
        finally:
            computed = cursor.end_checksum()
        self._check_crc(cursor, computed, "Blob properties")
        if blob_size < 0:
            raise DecodeError(f"Negative blob size {blob_size}", cursor.position)
        return BlobProperties(
            ttl_ms, is_private, creation_time_ms, blob_size, content_type, owner_id, service_id
        )

    def decode_user_metadata(self, cursor: ByteCursor) -> bytes:
        cursor.begin_checksum()
        try:
            self._expect_version(cursor, USER_METADATA_V1, "User metadata")
            size = cursor.read_int32()
            metadata = cursor.read(size)
        finally:
            computed = cursor.end_checksum()
        self._check_crc(cursor, computed, "User metadata")
        return metadata

    def decode_blob(self, cursor: ByteCursor) -> int:
        """Validate a blob data record and return its size."""
        cursor.begin_checksum()
        try:
            self._expect_version(cursor, BLOB_V1, "Blob")
            size = cursor.read_int64()
            cursor.read(size)
        finally:
            computed = cursor.end_checksum()
        self._check_crc(cursor, computed, "Blob")
        return size

    def decode_delete_record(self, cursor: ByteCursor) -> bool:
        cursor.begin_checksum()
        try:
            self._expect_version(cursor, DELETE_V1, "Delete record")
            flag = cursor.read_int8() != 0
        finally:
            computed = cursor.end_checksum()
        self._check_crc(cursor, computed, "Delete record")
        return flag

    def _check_relative_offset(self, name: str, stored: int, actual: int, offset: int) -> None:
        if stored != actual:
            raise DecodeError(f"{name} relative offset {stored} does not match {actual}", offset)

    def decode_log_record(self, cursor: ByteCursor, offset: int) -> DecodeOutcome:
        """Attempt to decode exactly one log record starting at offset."""
        cursor.seek(offset)

        # An unreadable or unknown version is a resync point, not end of input
        head = cursor.peek(VERSION_SIZE)
        if len(head) < VERSION_SIZE:
            return Skipped(f"Truncated version at {offset}", offset)
        version = struct.unpack(">h", head)[0]
        if version != MESSAGE_HEADER_V1:
            return Skipped(
                f"Header Version not supported. Thrown at reading a msg starting at {offset}",
                offset,
            )

        try:
            header = self.decode_header(cursor)
            key = self.key_codec.decode_key(cursor)
            body_start = cursor.position
            body_end = body_start + header.message_size
            if body_end > cursor.limit:
                raise EndOfInputError(body_start, header.message_size, cursor.remaining())

            blob_size = service_id = metadata_size = delete_flag = None
            with cursor.bounded(body_end):
                if header.is_put:
                    self._check_relative_offset(
                        "Blob properties", header.blob_props_rel_offset, 0, offset
                    )
                    props = self.decode_blob_properties(cursor)
                    self._check_relative_offset(
                        "User metadata",
                        header.user_metadata_rel_offset,
                        cursor.position - body_start,
                        offset,
                    )
                    metadata_size = len(self.decode_user_metadata(cursor))
                    self._check_relative_offset(
                        "Blob data",
                        header.blob_data_rel_offset,
                        cursor.position - body_start,
                        offset,
                    )
                    blob_size = self.decode_blob(cursor)
                    service_id = props.service_id
                else:
                    delete_flag = self.decode_delete_record(cursor)

            consumed = cursor.position - body_start
            if consumed != header.message_size:
                raise DecodeError(
                    f"Message size {header.message_size} does not match decoded size {consumed}",
                    offset,
                )
        except EndOfInputError as e:
            return Fatal(str(e), offset, e.needed, e.available)
        except DecodeError as e:
            return Skipped(str(e), offset)

        record = LogRecord(
            offset=offset,
            version=header.version,
            header_size=header.size,
            message_size=header.message_size,
            blob_props_rel_offset=header.blob_props_rel_offset,
            user_metadata_rel_offset=header.user_metadata_rel_offset,
            blob_data_rel_offset=header.blob_data_rel_offset,
            crc=header.crc,
            key=key,
            is_delete=not header.is_put,
            blob_size=blob_size,
            service_id=service_id,
            metadata_size=metadata_size,
            delete_flag=delete_flag,
        )
        return Decoded(record, offset, offset + record.total_size)

    def decode_index_entry(
        self, cursor: ByteCursor, key_size: int, value_size: int
    ) -> tuple[IndexEntry, Anomaly | None]:
        """Decode one index entry: a key followed by value_size bytes.

        Returns the entry and a key size anomaly when the key's own encoded
        size differs from the snapshot's declared key size.
        """
        start = cursor.position
        layout = INDEX_VALUE_LAYOUTS.get(value_size)
        if layout is None:
            raise DecodeError(f"Unsupported index value size {value_size}", start)

        key = self.key_codec.decode_key(cursor)
        value = layout(cursor.read(value_size))

        anomaly = None
        if key.size_in_bytes != key_size:
            anomaly = Anomaly(
                AnomalyKind.KEY_SIZE_MISMATCH,
                key.rendered,
                f"KeySize mismatch for key {key}",
            )
            logger.warning(
                f"Key {key} is {key.size_in_bytes} bytes, snapshot declares {key_size}"
            )
        return IndexEntry(key, value), anomaly
