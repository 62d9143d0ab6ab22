"""Index snapshot reader.

Decodes a snapshot file in full: header, entries and CRC trailer.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path

from ..core.errors import DecodeError
from ..core.types import IndexSnapshot
from .cursor import ByteCursor
from .records import INDEX_VALUE_LAYOUTS, RecordCodec

logger = logging.getLogger(__name__)

# Snapshot format:
# [version (2B)] [key_size (4B)] [value_size (4B)] [file_end_pointer (8B)] [entries] [crc (8B)]
INDEX_VERSION_V0 = 0
INDEX_HEADER = struct.Struct(">hiiq")
INDEX_HEADER_SIZE = INDEX_HEADER.size
CRC_SIZE = 8


class IndexReader:
    """Decode index snapshot files.

    Args:
        codec: Record codec used for the entries

    Invariants:
        - Entries are decoded while more than CRC_SIZE bytes remain
        - The last CRC_SIZE bytes are always read as the trailer
        - A key size mismatch is reported, never fatal
    """

    def __init__(self, codec: RecordCodec):
        self.codec = codec

    def read(self, path: str | Path) -> IndexSnapshot:
        """Decode the snapshot at path.

        Raises:
            DecodeError: If the version or value layout is not supported
            EndOfInputError: If the file ends inside the header or an entry
        """
        path = Path(path)
        with open(path, "rb") as f:
            cursor = ByteCursor(f)
            cursor.begin_checksum()
            version, key_size, value_size, file_end_pointer = INDEX_HEADER.unpack(
                cursor.read(INDEX_HEADER_SIZE)
            )
            if version != INDEX_VERSION_V0:
                cursor.end_checksum()
                raise DecodeError(f"Index version {version} not supported in {path.name}", 0)
            if value_size not in INDEX_VALUE_LAYOUTS:
                cursor.end_checksum()
                raise DecodeError(
                    f"Unsupported index value size {value_size} in {path.name}", 0
                )

            entries = []
            anomalies = []
            while cursor.remaining() > CRC_SIZE:
                entry, anomaly = self.codec.decode_index_entry(cursor, key_size, value_size)
                entries.append(entry)
                if anomaly is not None:
                    anomalies.append(anomaly)

            computed = cursor.end_checksum()
            crc = cursor.read_int64()

        crc_valid = crc == computed
        if not crc_valid:
            logger.warning(f"CRC mismatch in {path}: stored {crc:x}, computed {computed:x}")
        logger.debug(f"Read {len(entries)} entries from {path}")

        return IndexSnapshot(
            path=str(path),
            version=version,
            key_size=key_size,
            value_size=value_size,
            file_end_pointer=file_end_pointer,
            entries=tuple(entries),
            crc=crc,
            crc_valid=crc_valid,
            anomalies=tuple(anomalies),
        )
