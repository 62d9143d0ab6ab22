"""Blob audit core package."""

from .config import DumpConfig
from .dumper import DataDumper

__all__ = ["DataDumper", "DumpConfig"]
