"""Protocol definition for report output."""

from __future__ import annotations

from typing import Protocol


class ReportSink(Protocol):
    """Destination for report lines."""

    def emit(self, line: str) -> None:
        """Write an essential report line."""
        ...

    def misc(self, line: str) -> None:
        """Write a diagnostic line, unless miscellaneous output is suppressed."""
        ...

    def close(self) -> None:
        """Flush and release the destination."""
        ...
