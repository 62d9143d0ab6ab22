"""Replica directory catalog.

Lists the index snapshot files that belong to one replica, in the order
they are to be folded.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from ..core.config import FILE_ORDER_LISTING, FILE_ORDER_SEQUENCE
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^(\d+)")


def sequence_key(path: Path) -> tuple[int, int, str]:
    """Sort key: leading integer of the file name, then the name.

    Files without a leading integer sort after numbered ones.
    """
    match = _LEADING_NUMBER.match(path.name)
    if match:
        return (0, int(match.group(1)), path.name)
    return (1, 0, path.name)


class ReplicaIndexCatalog:
    """Index snapshot files of one replica directory.

    Args:
        replica_dir: Replica root directory
        suffix: File name suffix of index snapshots
        order: FILE_ORDER_LISTING (directory enumeration order) or
            FILE_ORDER_SEQUENCE (by embedded sequence number)
    """

    def __init__(self, replica_dir: str | Path, suffix: str = "_index", order: str = FILE_ORDER_LISTING):
        self.replica_dir = Path(replica_dir)
        self.suffix = suffix
        self.order = order
        if not self.replica_dir.is_dir():
            raise ConfigurationError(f"Replica directory not found: {self.replica_dir}")

    @property
    def replica_name(self) -> str:
        return self.replica_dir.name

    def list_index_files(self) -> list[Path]:
        paths = [
            self.replica_dir / name
            for name in os.listdir(self.replica_dir)
            if name.endswith(self.suffix) and (self.replica_dir / name).is_file()
        ]

        if self.order == FILE_ORDER_SEQUENCE:
            paths.sort(key=sequence_key)
        elif self.order != FILE_ORDER_LISTING:
            raise ConfigurationError(f"Unknown file order {self.order!r}")
        elif len(paths) > 1:
            logger.warning(
                f"Folding {len(paths)} index files of {self.replica_dir} in directory listing "
                f"order; put-after-delete detection assumes chronological order"
            )

        logger.info(f"Found {len(paths)} index files in {self.replica_dir}")
        return paths
