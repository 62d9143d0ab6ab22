"""Report output routed to stdout or a file."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class OutputSink:
    """Line-oriented report writer.

    Args:
        out_file: File to write to; stdout when None
        exclude_misc: Drop lines written through misc()

    Invariants:
        - The output file is flushed and closed by close() / __exit__
        - stdout is flushed but never closed
    """

    def __init__(self, out_file: str | Path | None = None, exclude_misc: bool = False):
        self.out_file = Path(out_file) if out_file is not None else None
        self.exclude_misc = exclude_misc
        self.lines_written = 0
        self._fd: TextIO | None
        if self.out_file is None:
            self._fd = sys.stdout
        else:
            self.out_file.parent.mkdir(parents=True, exist_ok=True)
            self._fd = open(self.out_file, "w", encoding="utf-8")
            logger.debug(f"Writing report to {self.out_file}")

    def emit(self, line: str) -> None:
        if self._fd is None:
            raise RuntimeError("Output sink is closed")
        self._fd.write(line + "\n")
        self.lines_written += 1

    def misc(self, line: str) -> None:
        if not self.exclude_misc:
            self.emit(line)

    def close(self) -> None:
        if self._fd is None:
            return
        self._fd.flush()
        if self.out_file is not None:
            self._fd.close()
            logger.info(f"Wrote {self.lines_written} lines to {self.out_file}")
        self._fd = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
