"""Replication cursor (replica token) file reader."""

from __future__ import annotations

import logging
import struct
from pathlib import Path

from ..core.errors import DecodeError
from ..core.types import PartitionId, ReplicaTokenFile, ReplicaTokenRecord, StoreFindToken
from ..interfaces.codec import KeyCodec, PartitionResolver, TokenCodec
from .cursor import ByteCursor

logger = logging.getLogger(__name__)

# Cursor file format:
# [version (2B)] {[partition] [hostname (str)] [replica_path (str)] [port (4B)]
#                 [total_bytes_read (8B)] [token]}* [crc (8B)]
REPLICA_TOKEN_VERSION_V0 = 0
CRC_SIZE = 8

PARTITION_VERSION_V1 = 1
_PARTITION = struct.Struct(">hq")

STORE_FIND_TOKEN_VERSION_V0 = 0


class DefaultPartitionResolver:
    """Reads [version (2B)] [partition id (8B)]."""

    def resolve_partition_id(self, cursor: ByteCursor) -> PartitionId:
        start = cursor.position
        version, partition = _PARTITION.unpack(cursor.read(_PARTITION.size))
        if version != PARTITION_VERSION_V1:
            raise DecodeError(f"Partition id version {version} not supported", start)
        return PartitionId(version, partition)


class StoreFindTokenCodec:
    """Reads [version (2B)] [session id (str)] [log offset (8B)] [has key (1B)] [key]."""

    def __init__(self, key_codec: KeyCodec):
        self.key_codec = key_codec

    def decode_token(self, cursor: ByteCursor) -> StoreFindToken:
        start = cursor.position
        version = cursor.read_int16()
        if version != STORE_FIND_TOKEN_VERSION_V0:
            raise DecodeError(f"Find token version {version} not supported", start)
        session_id = cursor.read_string()
        log_offset = cursor.read_int64()
        index_key = self.key_codec.decode_key(cursor) if cursor.read_int8() else None
        return StoreFindToken(version, session_id, log_offset, index_key)


class ReplicaTokenReader:
    """Decode every cursor record of a replica token file.

    Args:
        partition_resolver: Resolver for the partition id of each record
        token_codecs: Token codec per cursor file version

    Invariants:
        - Records are decoded while more than CRC_SIZE bytes remain
        - An unknown file version is fatal for the whole file
    """

    def __init__(
        self,
        partition_resolver: PartitionResolver,
        token_codecs: dict[int, TokenCodec],
    ):
        self.partition_resolver = partition_resolver
        self.token_codecs = token_codecs

    def read(self, path: str | Path) -> ReplicaTokenFile:
        path = Path(path)
        with open(path, "rb") as f:
            cursor = ByteCursor(f)
            version = cursor.read_int16()
            token_codec = self.token_codecs.get(version)
            if token_codec is None:
                raise DecodeError(f"Replica token version {version} not supported in {path.name}", 0)

            records = []
            while cursor.remaining() > CRC_SIZE:
                partition_id = self.partition_resolver.resolve_partition_id(cursor)
                hostname = cursor.read_string()
                replica_path = cursor.read_string()
                port = cursor.read_int32()
                total_bytes_read = cursor.read_int64()
                token = token_codec.decode_token(cursor)
                records.append(
                    ReplicaTokenRecord(
                        partition_id, hostname, replica_path, port, total_bytes_read, token
                    )
                )
            crc = cursor.read_int64()

        logger.debug(f"Read {len(records)} replica tokens from {path}")
        return ReplicaTokenFile(str(path), version, tuple(records), crc)


def default_token_reader(key_codec: KeyCodec) -> ReplicaTokenReader:
    return ReplicaTokenReader(
        DefaultPartitionResolver(),
        {REPLICA_TOKEN_VERSION_V0: StoreFindTokenCodec(key_codec)},
    )
