"""Blob audit - offline inspector for blob store logs, index snapshots and replica tokens."""

from .core.config import DumpConfig
from .core.dumper import DataDumper
from .core.errors import (
    AuditError,
    ConfigurationError,
    DecodeError,
    EndOfInputError,
)
from .core.types import (
    Anomaly,
    AnomalyKind,
    BlobStatus,
    IndexEntry,
    IndexSnapshot,
    IndexValue,
    LogRecord,
    ReplicaTokenRecord,
    StoreKey,
)

__all__ = [
    "DumpConfig",
    "DataDumper",
    "AuditError",
    "ConfigurationError",
    "DecodeError",
    "EndOfInputError",
    "Anomaly",
    "AnomalyKind",
    "BlobStatus",
    "IndexEntry",
    "IndexSnapshot",
    "IndexValue",
    "LogRecord",
    "ReplicaTokenRecord",
    "StoreKey",
]
