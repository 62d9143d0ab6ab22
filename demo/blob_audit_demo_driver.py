#!/usr/bin/env python3
"""Blob Audit Demo Driver

Generates a small blob store on disk (a log, index snapshots per replica and
a replica token file), optionally corrupts part of the log, and runs the
auditor operations against it.

Usage:
    python demo/blob_audit_demo_driver.py --blobs 200 --delete-ratio 0.2 --corrupt-bytes 16
"""

from __future__ import annotations

import argparse
import os
import random
import time
from pathlib import Path

from blob_audit import DataDumper, DumpConfig
from blob_audit.components.encoders import (
    IndexValueSpec,
    ReplicaTokenSpec,
    encode_delete,
    encode_index,
    encode_put_record,
    encode_replica_tokens,
    write_file,
)
from blob_audit.components.keys import BlobIdKeyCodec
from blob_audit.components.output import OutputSink
from blob_audit.core import config as ops


def build_store(args: argparse.Namespace) -> dict[str, Path]:
    """Write the sample store and return the paths of its files."""
    rng = random.Random(args.seed)
    codec = BlobIdKeyCodec(partition=args.partition)
    data_dir = Path(args.data_dir)
    key_size = len(codec.encode_key("blob-00000"))

    log = bytearray()
    entries = []
    live = []
    for i in range(args.blobs):
        key = f"blob-{i:05d}"
        raw = encode_put_record(codec, key, os.urandom(rng.randint(1, args.max_blob_bytes)))
        entries.append((key, IndexValueSpec(len(log), len(raw))))
        log += raw
        live.append(key)

        if live and rng.random() < args.delete_ratio:
            victim = live.pop(rng.randrange(len(live)))
            raw = encode_delete(codec, victim)
            entries.append((victim, IndexValueSpec(len(log), len(raw), deleted=True)))
            log += raw

    if args.corrupt_bytes:
        # Overwrite the middle of the log; the scanner resynchronises past it
        start = len(log) // 2
        log[start : start + args.corrupt_bytes] = b"\xab" * args.corrupt_bytes

    paths = {"log": write_file(data_dir / "log_current", bytes(log))}

    # Each replica splits the same entries into snapshots at different points
    replicas = []
    for r in range(args.replicas):
        replica_dir = data_dir / f"replica-{r}"
        cut = rng.randint(1, max(1, len(entries) - 1))
        for seq, chunk in enumerate((entries[:cut], entries[cut:])):
            write_file(
                replica_dir / f"{seq}_index",
                encode_index(codec, chunk, key_size=key_size, file_end_pointer=len(log)),
            )
        replicas.append(replica_dir)
    paths["index"] = replicas[0] / "0_index"

    tokens = [
        ReplicaTokenSpec(
            args.partition,
            f"host-{r}",
            str(replica_dir),
            15088,
            rng.randint(0, len(log)),
            f"session-{r}",
            rng.randint(0, len(log)),
            live[0] if live else None,
        )
        for r, replica_dir in enumerate(replicas)
    ]
    paths["tokens"] = write_file(data_dir / "replicaTokens", encode_replica_tokens(codec, tokens))

    print(f"Wrote {args.blobs} blobs ({len(entries)} index entries, {len(log)} log bytes)")
    print(f"Replicas: {', '.join(str(r) for r in replicas)}")
    paths.update({f"replica-{i}": r for i, r in enumerate(replicas)})
    return paths


def run_demo(args: argparse.Namespace) -> None:
    """Build the store and run each auditor operation against it."""
    paths = build_store(args)
    replica = str(paths["replica-0"])

    configs = [
        DumpConfig(ops.DUMP_LOG, file_to_read=str(paths["log"])),
        DumpConfig(ops.DUMP_INDEXES_FOR_REPLICA, replica_root_directory=replica),
        DumpConfig(ops.DUMP_ACTIVE_BLOBS_FOR_REPLICA, replica_root_directory=replica),
        DumpConfig(
            ops.DUMP_N_RANDOM_ACTIVE_BLOBS_FOR_REPLICA,
            replica_root_directory=replica,
            active_blobs_count=args.sample,
            seed=args.seed,
        ),
        DumpConfig(ops.COMPARE_INDEX_TO_LOG, file_to_read=str(paths["index"]), log_file=str(paths["log"])),
        DumpConfig(ops.DUMP_REPLICA_TOKEN, file_to_read=str(paths["tokens"])),
        DumpConfig(
            ops.BLOB_STATUS_FOR_REPLICAS,
            replica_directories=[str(paths[f"replica-{r}"]) for r in range(args.replicas)],
            file_order=ops.FILE_ORDER_SEQUENCE,
        ),
    ]

    out_dir = Path(args.out_dir)
    for config in configs:
        config.out_file = str(out_dir / f"{config.operation}.txt")
        config.exclude_misc_logging = args.exclude_misc_logging
        t0 = time.time()
        with OutputSink(config.out_file, config.exclude_misc_logging) as sink:
            DataDumper(config, sink).run()
            lines = sink.lines_written
        print(f"{config.operation:<34} {lines:>7} lines  {(time.time() - t0) * 1000:8.1f} ms")


def main() -> None:
    """Parse arguments and run demo."""
    p = argparse.ArgumentParser(description="Blob audit demo driver")

    # Store layout
    p.add_argument("--data-dir", default="/tmp/blob_audit_demo", help="Store directory")
    p.add_argument("--out-dir", default="/tmp/blob_audit_demo/reports", help="Report directory")
    p.add_argument("--replicas", type=int, default=3, help="Number of replica directories")
    p.add_argument("--partition", type=int, default=1, help="Partition id of the store")

    # Workload
    p.add_argument("--blobs", type=int, default=200, help="Number of blobs to put")
    p.add_argument("--delete-ratio", type=float, default=0.2, help="Chance of a delete after each put")
    p.add_argument("--max-blob-bytes", type=int, default=512, help="Largest blob payload")
    p.add_argument(
        "--corrupt-bytes", type=int, default=0, help="Bytes of noise written over the middle of the log"
    )

    # Reports
    p.add_argument("--sample", type=int, default=10, help="Random active blobs to dump")
    p.add_argument("--seed", type=int, default=7, help="Random seed")
    p.add_argument(
        "--exclude-misc-logging", action="store_true", help="Only write blob information"
    )

    args = p.parse_args()
    os.makedirs(args.data_dir, exist_ok=True)

    run_demo(args)


if __name__ == "__main__":
    main()
