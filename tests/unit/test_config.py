"""Unit tests for DumpConfig validation and config file loading."""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

from blob_audit.core.config import (
    BLOB_STATUS_FOR_REPLICAS,
    COMPARE_INDEX_TO_LOG,
    DUMP_INDEX,
    DUMP_LOG,
    DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA,
    KEY_CODEC_FIXED,
    OPERATIONS,
    DumpConfig,
    load_config_defaults,
)
from blob_audit.core.errors import ConfigurationError


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


def test_valid_file_operation():
    """Test a file operation with its file validates."""
    DumpConfig(DUMP_INDEX, file_to_read="0_index").validate()


def test_unknown_operation():
    """Test an unknown operation name is rejected."""
    with pytest.raises(ConfigurationError, match="Unknown operation"):
        DumpConfig("DumpEverything").validate()


@pytest.mark.parametrize("operation", [DUMP_INDEX, DUMP_LOG, COMPARE_INDEX_TO_LOG])
def test_file_operation_without_file(operation):
    """Test file operations require file_to_read."""
    with pytest.raises(ConfigurationError, match="fileToRead"):
        DumpConfig(operation, log_file="log_current").validate()


def test_compare_requires_log_file():
    """Test CompareIndexToLog needs both files."""
    with pytest.raises(ConfigurationError, match="logFileToDump"):
        DumpConfig(COMPARE_INDEX_TO_LOG, file_to_read="0_index").validate()


def test_replica_operation_requires_directory():
    """Test replica operations require the replica root directory."""
    with pytest.raises(ConfigurationError, match="replicaRootDirectory"):
        DumpConfig(DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA, active_blobs_count=3).validate()


def test_random_blobs_requires_count():
    """Test the random active blob dump fails without a count."""
    config = DumpConfig(DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA, replica_root_directory="r1")

    with pytest.raises(ConfigurationError, match="Active Blobs count should be set"):
        config.validate()


def test_random_blobs_rejects_negative_count():
    """Test a negative sample count is rejected."""
    config = DumpConfig(
        DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA, replica_root_directory="r1", active_blobs_count=-1
    )

    with pytest.raises(ConfigurationError):
        config.validate()


def test_blob_status_requires_replicas():
    """Test the cross-replica status needs at least one directory."""
    with pytest.raises(ConfigurationError):
        DumpConfig(BLOB_STATUS_FOR_REPLICAS).validate()


def test_missing_replica_directory(temp_dir):
    """Test replica directories must exist before the run starts."""
    missing = os.path.join(temp_dir, "replica-9")

    with pytest.raises(ConfigurationError, match="Replica directory not found"):
        DumpConfig(
            DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA,
            replica_root_directory=missing,
            active_blobs_count=1,
        ).validate()
    with pytest.raises(ConfigurationError, match="replica-9"):
        DumpConfig(BLOB_STATUS_FOR_REPLICAS, replica_directories=[temp_dir, missing]).validate()

    DumpConfig(BLOB_STATUS_FOR_REPLICAS, replica_directories=[temp_dir]).validate()


def test_offsets_must_be_ordered():
    """Test a start offset past the end offset is rejected."""
    with pytest.raises(ConfigurationError, match="past end_offset"):
        DumpConfig(DUMP_LOG, file_to_read="log", start_offset=10, end_offset=5).validate()
    with pytest.raises(ConfigurationError):
        DumpConfig(DUMP_LOG, file_to_read="log", start_offset=-1).validate()


def test_fixed_codec_requires_width():
    """Test the fixed key codec needs a positive width."""
    with pytest.raises(ConfigurationError, match="key_width"):
        DumpConfig(DUMP_INDEX, file_to_read="0_index", key_codec=KEY_CODEC_FIXED).validate()

    DumpConfig(DUMP_INDEX, file_to_read="0_index", key_codec=KEY_CODEC_FIXED, key_width=8).validate()


def test_unknown_strategy_and_order():
    """Test unknown sample strategies and file orders are rejected."""
    with pytest.raises(ConfigurationError):
        DumpConfig(DUMP_INDEX, file_to_read="i", sample_strategy="reservoir").validate()
    with pytest.raises(ConfigurationError):
        DumpConfig(DUMP_INDEX, file_to_read="i", file_order="mtime").validate()


def test_every_operation_is_named():
    """Test the operation list covers all nine operations."""
    assert len(OPERATIONS) == len(set(OPERATIONS)) == 9


def test_load_config_defaults(temp_dir):
    """Test a TOML file provides DumpConfig fields."""
    path = Path(temp_dir) / "audit.toml"
    path.write_text(
        'operation = "DumpLog"\nfile_to_read = "log_current"\nstart_offset = 16\n',
        encoding="utf-8",
    )

    values = load_config_defaults(path)
    config = DumpConfig(**values)
    config.validate()

    assert config.operation == DUMP_LOG
    assert config.start_offset == 16


def test_load_yaml_config_defaults(temp_dir):
    """Test a YAML file provides DumpConfig fields."""
    path = Path(temp_dir) / "audit.yaml"
    path.write_text(
        "operation: DumpNRandomActiveBlobsForReplica\n"
        f"replica_root_directory: {temp_dir}\n"
        "active_blobs_count: 5\n"
        "blob_ids: [blob-1, blob-2]\n",
        encoding="utf-8",
    )

    config = DumpConfig(**load_config_defaults(path))
    config.validate()

    assert config.active_blobs_count == 5
    assert config.blob_ids == ["blob-1", "blob-2"]


def test_load_config_rejects_non_table(temp_dir):
    """Test a YAML document that is not a mapping is rejected."""
    path = Path(temp_dir) / "audit.yml"
    path.write_text("- DumpLog\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="table of options"):
        load_config_defaults(path)


def test_load_config_rejects_unknown_keys(temp_dir):
    """Test a misspelled key in the config file is an error."""
    path = Path(temp_dir) / "audit.toml"
    path.write_text('operation = "DumpLog"\nfile_too_read = "x"\n', encoding="utf-8")

    with pytest.raises(ConfigurationError, match="file_too_read"):
        load_config_defaults(path)


def test_load_config_missing_or_invalid(temp_dir):
    """Test missing and malformed config files are configuration errors."""
    with pytest.raises(ConfigurationError, match="not found"):
        load_config_defaults(Path(temp_dir) / "missing.toml")

    path = Path(os.path.join(temp_dir, "bad.toml"))
    path.write_text("operation = \n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid config file"):
        load_config_defaults(path)
