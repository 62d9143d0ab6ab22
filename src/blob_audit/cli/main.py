# Command line entry point: parse options, build a DumpConfig and run one operation.
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from blob_audit.components.output import OutputSink
from blob_audit.core.config import (
    FILE_ORDER_LISTING,
    FILE_ORDER_SEQUENCE,
    KEY_CODEC_BLOB_ID,
    KEY_CODEC_FIXED,
    OPERATIONS,
    SAMPLE_WITH_REPLACEMENT,
    SAMPLE_WITHOUT_REPLACEMENT,
    DumpConfig,
    load_config_defaults,
)
from blob_audit.core.dumper import DataDumper
from blob_audit.core.errors import AuditError, ConfigurationError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUDIT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="blob-audit",
        description="Dump and cross-check blob store logs, index snapshots and replica tokens",
    )
    p.add_argument(
        "--type-of-operation",
        "--operation",
        dest="operation",
        choices=OPERATIONS,
        help="Operation to perform",
    )
    p.add_argument(
        "--file-to-read",
        dest="file_to_read",
        help="Index file for DumpIndex/DumpActiveBlobsFromIndex/CompareIndexToLog, "
        "log file for DumpLog, replica token file for DumpReplicatoken",
    )
    p.add_argument(
        "--log-file-to-dump",
        dest="log_file",
        help="Log file checked by CompareIndexToLog",
    )
    p.add_argument(
        "--replica-root-directory",
        dest="replica_root_directory",
        help="Directory holding the index files of one replica",
    )
    p.add_argument(
        "--replica-directory",
        dest="replica_directories",
        action="append",
        help="Replica directory for BlobStatusForReplicas (repeatable)",
    )
    p.add_argument("--start-offset", type=int, help="Log offset to start dumping from")
    p.add_argument("--end-offset", type=int, help="Log offset to end dumping at")
    p.add_argument(
        "--list-of-blobs",
        dest="blob_ids",
        help="Comma separated blob ids to look for",
    )
    p.add_argument("--out-file", help="Write the report to this file instead of stdout")
    p.add_argument(
        "--exclude-misc-logging",
        action="store_true",
        default=None,
        help="Only output blob information, no file/size/crc details",
    )
    p.add_argument(
        "--active-blobs-count",
        type=int,
        help="Number of random active blobs to dump (DumpNRandomActiveBlobsForReplica)",
    )
    p.add_argument(
        "--sample-strategy",
        choices=(SAMPLE_WITH_REPLACEMENT, SAMPLE_WITHOUT_REPLACEMENT),
        help="How random active blobs are drawn (default: with-replacement)",
    )
    p.add_argument("--seed", type=int, help="Seed for random sampling")
    p.add_argument(
        "--key-codec",
        choices=(KEY_CODEC_BLOB_ID, KEY_CODEC_FIXED),
        help="Key format (default: blobid)",
    )
    p.add_argument("--key-width", type=int, help="Key width in bytes for the fixed key codec")
    p.add_argument(
        "--file-order",
        choices=(FILE_ORDER_LISTING, FILE_ORDER_SEQUENCE),
        help="Order in which a replica's index files are folded (default: listing)",
    )
    p.add_argument("--index-suffix", help="File name suffix of index files (default: _index)")
    p.add_argument("--config", type=Path, help="TOML or YAML file with default option values")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Diagnostic log level (default: WARNING)",
    )
    return p


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )


def config_from_args(args: argparse.Namespace) -> DumpConfig:
    values = load_config_defaults(args.config) if args.config else {}

    overrides = {
        name: getattr(args, name)
        for name in (
            "operation",
            "file_to_read",
            "log_file",
            "replica_root_directory",
            "replica_directories",
            "start_offset",
            "end_offset",
            "out_file",
            "exclude_misc_logging",
            "active_blobs_count",
            "sample_strategy",
            "seed",
            "key_codec",
            "key_width",
            "file_order",
            "index_suffix",
        )
        if getattr(args, name) is not None
    }
    if args.blob_ids is not None:
        overrides["blob_ids"] = [b.strip() for b in args.blob_ids.split(",") if b.strip()]
    values.update(overrides)

    if "operation" not in values:
        raise ConfigurationError("Missing required argument --type-of-operation")
    config = DumpConfig(**values)
    config.validate()
    return config


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if config.blob_ids:
        logger.info(f"Blobs to look out for :: {config.blob_ids}")
    logger.info(f"File to read {config.file_to_read}")
    logger.info(f"Type of Operation {config.operation}")

    try:
        with OutputSink(config.out_file, config.exclude_misc_logging) as sink:
            DataDumper(config, sink).run()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except AuditError as e:
        logger.error(f"{config.operation} failed: {e}")
        print(f"Closed with error {e}", file=sys.stderr)
        return EXIT_AUDIT_ERROR
    except OSError as e:
        print(f"Closed with error {e}", file=sys.stderr)
        return EXIT_AUDIT_ERROR

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
