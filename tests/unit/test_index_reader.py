"""Unit tests for IndexReader."""

import os
import shutil
import struct
import tempfile

import pytest

from blob_audit.components.encoders import IndexValueSpec, encode_index, write_file
from blob_audit.components.index_reader import CRC_SIZE, INDEX_HEADER_SIZE, IndexReader
from blob_audit.components.keys import BlobIdKeyCodec, FixedWidthKeyCodec
from blob_audit.components.records import RecordCodec
from blob_audit.core.errors import DecodeError, EndOfInputError
from blob_audit.core.types import AnomalyKind


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def key_codec():
    return FixedWidthKeyCodec(8)


@pytest.fixture
def reader(key_codec):
    return IndexReader(RecordCodec(key_codec))


def _keys(n):
    return [f"{i:016x}" for i in range(n)]


@pytest.mark.parametrize("value_size", [24, 25, 33])
def test_entry_count_matches_file_size(temp_dir, key_codec, reader, value_size):
    """Test the decoded entry count is (size - header - crc) / entry size."""
    entries = [(k, IndexValueSpec(offset=i * 100, size=100)) for i, k in enumerate(_keys(7))]
    data = encode_index(key_codec, entries, key_size=8, value_size=value_size, file_end_pointer=700)
    path = write_file(os.path.join(temp_dir, "0_index"), data)

    snapshot = reader.read(path)

    assert snapshot.entry_count == (len(data) - INDEX_HEADER_SIZE - CRC_SIZE) // (8 + value_size)
    assert snapshot.entry_count == 7
    assert snapshot.key_size == 8
    assert snapshot.value_size == value_size
    assert snapshot.file_end_pointer == 700
    assert snapshot.crc_valid
    assert [e.key.rendered for e in snapshot.entries] == _keys(7)
    assert [e.log_offset for e in snapshot.entries] == [i * 100 for i in range(7)]


def test_empty_snapshot(temp_dir, key_codec, reader):
    """Test a snapshot with only a header and trailer has no entries."""
    path = write_file(os.path.join(temp_dir, "0_index"), encode_index(key_codec, [], key_size=8))

    snapshot = reader.read(path)

    assert snapshot.entry_count == 0
    assert snapshot.crc_valid


def test_deleted_and_expiring_flags(temp_dir, key_codec, reader):
    """Test delete flags and expiry times survive decoding."""
    keys = _keys(2)
    entries = [
        (keys[0], IndexValueSpec(0, 10, deleted=True)),
        (keys[1], IndexValueSpec(10, 10, expires_at_ms=5000)),
    ]
    path = write_file(os.path.join(temp_dir, "0_index"), encode_index(key_codec, entries, key_size=8))

    first, second = reader.read(path).entries

    assert first.value.is_deleted
    assert not second.value.is_deleted
    assert second.value.is_expired(now_ms=6000)
    assert not second.value.is_expired(now_ms=4000)


def test_key_size_mismatch_is_reported_not_fatal(temp_dir):
    """Test entries whose key differs from the declared size are kept and reported."""
    key_codec = BlobIdKeyCodec()
    reader = IndexReader(RecordCodec(key_codec))
    entries = [
        ("blob-1", IndexValueSpec(0, 10)),
        ("blob-22", IndexValueSpec(10, 10)),
        ("blob-3", IndexValueSpec(20, 10)),
    ]
    declared = len(key_codec.encode_key("blob-1"))
    path = write_file(
        os.path.join(temp_dir, "0_index"), encode_index(key_codec, entries, key_size=declared)
    )

    snapshot = reader.read(path)

    assert snapshot.entry_count == 3
    assert [a.kind for a in snapshot.anomalies] == [AnomalyKind.KEY_SIZE_MISMATCH]
    assert snapshot.anomalies[0].key == "blob-22"
    assert str(snapshot.anomalies[0]) == "KeySize mismatch for key blob-22"


def test_crc_mismatch_is_flagged(temp_dir, key_codec, reader):
    """Test a corrupted entry leaves crc_valid False without failing the read."""
    data = bytearray(
        encode_index(key_codec, [(_keys(1)[0], IndexValueSpec(0, 10))], key_size=8)
    )
    data[INDEX_HEADER_SIZE + 2] ^= 0xFF
    path = write_file(os.path.join(temp_dir, "0_index"), bytes(data))

    snapshot = reader.read(path)

    assert snapshot.entry_count == 1
    assert not snapshot.crc_valid


def test_unsupported_version(temp_dir, key_codec, reader):
    """Test an unknown snapshot version raises DecodeError."""
    data = encode_index(key_codec, [], key_size=8, version=3)
    path = write_file(os.path.join(temp_dir, "0_index"), data)

    with pytest.raises(DecodeError, match="version 3"):
        reader.read(path)


def test_unsupported_value_size(temp_dir, key_codec, reader):
    """Test an unknown value layout raises DecodeError."""
    header = struct.pack(">hiiq", 0, 8, 40, 0)
    path = write_file(os.path.join(temp_dir, "0_index"), header + b"\x00" * 48 + b"\x00" * 8)

    with pytest.raises(DecodeError, match="value size 40"):
        reader.read(path)


def test_empty_snapshot_with_unsupported_value_size(temp_dir, key_codec, reader):
    """Test a snapshot without entries still has its value size checked."""
    data = encode_index(key_codec, [], key_size=8, value_size=40)
    path = write_file(os.path.join(temp_dir, "0_index"), data)

    with pytest.raises(DecodeError, match="value size 40"):
        reader.read(path)


def test_truncated_entry(temp_dir, key_codec, reader):
    """Test a snapshot cut inside an entry raises EndOfInputError."""
    data = encode_index(
        key_codec, [(k, IndexValueSpec(0, 10)) for k in _keys(3)], key_size=8, value_size=33
    )
    path = write_file(os.path.join(temp_dir, "0_index"), data[:-20])

    with pytest.raises(EndOfInputError):
        reader.read(path)
