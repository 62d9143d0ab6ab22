"""Key codecs.

Blob ids are self-delimiting: a version, the owning partition and a length
prefixed identifier. Fixed width keys are plain byte strings.
"""

from __future__ import annotations

import struct

from ..core.config import KEY_CODEC_BLOB_ID, KEY_CODEC_FIXED
from ..core.errors import ConfigurationError, DecodeError
from ..core.types import StoreKey
from ..interfaces.codec import KeyCodec
from .cursor import ByteCursor

# Blob id format: [version (2B)] [partition (8B)] [id_len (4B)] [id bytes]
BLOB_ID_VERSION = 1
_BLOB_ID_PREFIX = struct.Struct(">hqi")


class BlobIdKeyCodec:
    """Codec for blob ids.

    Args:
        partition: Partition number written by encode_key
    """

    def __init__(self, partition: int = 0):
        self.partition = partition

    def decode_key(self, cursor: ByteCursor) -> StoreKey:
        start = cursor.position
        prefix = cursor.read(_BLOB_ID_PREFIX.size)
        version, _partition, id_len = _BLOB_ID_PREFIX.unpack(prefix)
        if version != BLOB_ID_VERSION:
            raise DecodeError(f"Blob id version {version} not supported", start)
        if id_len <= 0:
            raise DecodeError(f"Invalid blob id length {id_len}", start)
        raw_id = cursor.read(id_len)
        try:
            rendered = raw_id.decode("ascii")
        except UnicodeDecodeError as e:
            raise DecodeError("Blob id is not ASCII", start) from e
        return StoreKey(prefix + raw_id, rendered)

    def encode_key(self, rendered: str) -> bytes:
        raw_id = rendered.encode("ascii")
        return _BLOB_ID_PREFIX.pack(BLOB_ID_VERSION, self.partition, len(raw_id)) + raw_id


class FixedWidthKeyCodec:
    """Codec for keys of a constant width, rendered as hex."""

    def __init__(self, width: int):
        if width <= 0:
            raise ConfigurationError(f"Key width must be positive, got {width}")
        self.width = width

    def decode_key(self, cursor: ByteCursor) -> StoreKey:
        raw = cursor.read(self.width)
        return StoreKey(raw, raw.hex())

    def encode_key(self, rendered: str) -> bytes:
        raw = bytes.fromhex(rendered)
        if len(raw) != self.width:
            raise ValueError(f"Key {rendered} is {len(raw)} bytes, expected {self.width}")
        return raw


def make_key_codec(name: str, width: int | None = None) -> KeyCodec:
    """Return the key codec registered under name."""
    if name == KEY_CODEC_BLOB_ID:
        return BlobIdKeyCodec()
    if name == KEY_CODEC_FIXED:
        if width is None:
            raise ConfigurationError("The fixed key codec needs a key width")
        return FixedWidthKeyCodec(width)
    raise ConfigurationError(f"Unknown key codec {name!r}")
