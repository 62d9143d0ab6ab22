"""Configuration for the blob store auditor.

Defines every option an operation can consume and validates them before
any file is opened.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

DUMP_INDEX = "DumpIndex"
DUMP_INDEXES_FOR_REPLICA = "DumpIndexesForReplica"
DUMP_ACTIVE_BLOBS_FROM_INDEX = "DumpActiveBlobsFromIndex"
DUMP_ACTIVE_BLOBS_FOR_REPLICA = "DumpActiveBlobsForReplica"
DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA = "DumpNRandomActiveBlobsForReplica"
DUMP_LOG = "DumpLog"
DUMP_REPLICA_TOKEN = "DumpReplicatoken"
COMPARE_INDEX_TO_LOG = "CompareIndexToLog"
BLOB_STATUS_FOR_REPLICAS = "BlobStatusForReplicas"

OPERATIONS = (
    DUMP_INDEX,
    DUMP_INDEXES_FOR_REPLICA,
    DUMP_ACTIVE_BLOBS_FROM_INDEX,
    DUMP_ACTIVE_BLOBS_FOR_REPLICA,
    DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA,
    DUMP_LOG,
    DUMP_REPLICA_TOKEN,
    COMPARE_INDEX_TO_LOG,
    BLOB_STATUS_FOR_REPLICAS,
)

_FILE_OPERATIONS = {
    DUMP_INDEX,
    DUMP_ACTIVE_BLOBS_FROM_INDEX,
    DUMP_LOG,
    DUMP_REPLICA_TOKEN,
    COMPARE_INDEX_TO_LOG,
}
_REPLICA_OPERATIONS = {
    DUMP_INDEXES_FOR_REPLICA,
    DUMP_ACTIVE_BLOBS_FOR_REPLICA,
    DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA,
}

SAMPLE_WITH_REPLACEMENT = "with-replacement"
SAMPLE_WITHOUT_REPLACEMENT = "without-replacement"
FILE_ORDER_LISTING = "listing"
FILE_ORDER_SEQUENCE = "sequence"
KEY_CODEC_BLOB_ID = "blobid"
KEY_CODEC_FIXED = "fixed"


@dataclass
class DumpConfig:
    """Options for one auditor run.

    Attributes:
        operation: One of OPERATIONS
        file_to_read: Index, log or replica token file, depending on operation
        log_file: Log file checked by CompareIndexToLog
        replica_root_directory: Directory holding one replica's index files
        replica_directories: Replica directories for BlobStatusForReplicas
        start_offset: Log offset to start dumping from (None = file start)
        end_offset: Log offset to stop dumping at (None = file length)
        blob_ids: Rendered keys to restrict output to (None = no filter)
        out_file: Output file (None = stdout)
        exclude_misc_logging: Suppress non-essential report lines
        active_blobs_count: Number of random active blobs to sample
        sample_strategy: Sampling with or without replacement
        seed: Seed for the sampler's random generator
        key_codec: Key format name
        key_width: Key width for the fixed key codec
        file_order: How index files in a replica directory are ordered
        index_suffix: File name suffix selecting index snapshot files
    """

    operation: str
    file_to_read: str | None = None
    log_file: str | None = None
    replica_root_directory: str | None = None
    replica_directories: list[str] = field(default_factory=list)
    start_offset: int | None = None
    end_offset: int | None = None
    blob_ids: list[str] | None = None
    out_file: str | None = None
    exclude_misc_logging: bool = False
    active_blobs_count: int | None = None
    sample_strategy: str = SAMPLE_WITH_REPLACEMENT
    seed: int | None = None
    key_codec: str = KEY_CODEC_BLOB_ID
    key_width: int | None = None
    file_order: str = FILE_ORDER_LISTING
    index_suffix: str = "_index"

    def validate(self) -> None:
        """Raise ConfigurationError if this run cannot start."""
        if self.operation not in OPERATIONS:
            raise ConfigurationError(
                f"Unknown operation {self.operation!r}, expected one of {', '.join(OPERATIONS)}"
            )

        if self.operation in _FILE_OPERATIONS and not self.file_to_read:
            raise ConfigurationError(f"fileToRead needs to be set for {self.operation}")

        if self.operation in _REPLICA_OPERATIONS and not self.replica_root_directory:
            raise ConfigurationError(
                f"replicaRootDirectory needs to be set for {self.operation}"
            )

        if self.operation == BLOB_STATUS_FOR_REPLICAS and not self.replica_directories:
            raise ConfigurationError(
                f"At least one replica directory needs to be set for {self.operation}"
            )

        if self.operation == COMPARE_INDEX_TO_LOG and not self.log_file:
            raise ConfigurationError("logFileToDump needs to be set for CompareIndexToLog")

        if self.operation == DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA:
            if self.active_blobs_count is None:
                raise ConfigurationError("Active Blobs count should be set")
            if self.active_blobs_count < 0:
                raise ConfigurationError(
                    f"Active Blobs count must not be negative, got {self.active_blobs_count}"
                )

        for name in ("start_offset", "end_offset"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigurationError(f"{name} must not be negative, got {value}")
        if (
            self.start_offset is not None
            and self.end_offset is not None
            and self.start_offset > self.end_offset
        ):
            raise ConfigurationError(
                f"start_offset {self.start_offset} is past end_offset {self.end_offset}"
            )

        if self.sample_strategy not in (SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT):
            raise ConfigurationError(f"Unknown sample strategy {self.sample_strategy!r}")

        if self.file_order not in (FILE_ORDER_LISTING, FILE_ORDER_SEQUENCE):
            raise ConfigurationError(f"Unknown file order {self.file_order!r}")

        if self.key_codec == KEY_CODEC_FIXED:
            if not self.key_width or self.key_width <= 0:
                raise ConfigurationError("key_width must be a positive integer for the fixed key codec")
        elif self.key_codec != KEY_CODEC_BLOB_ID:
            raise ConfigurationError(f"Unknown key codec {self.key_codec!r}")

        # Checked here so a missing directory never reaches the output file
        replica_dirs = list(self.replica_directories) if self.operation == BLOB_STATUS_FOR_REPLICAS else []
        if self.operation in _REPLICA_OPERATIONS:
            replica_dirs.append(self.replica_root_directory)
        for replica_dir in replica_dirs:
            if not Path(replica_dir).is_dir():
                raise ConfigurationError(f"Replica directory not found: {replica_dir}")


def load_config_defaults(path: Path) -> dict[str, Any]:
    """Load DumpConfig defaults from a TOML or YAML (.yaml/.yml) file.

    Only keys naming a DumpConfig field are returned; anything else is
    rejected so typos do not pass silently.
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = tomllib.loads(text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must hold a table of options")

    known = {f.name for f in fields(DumpConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(unknown)}")
    return data
