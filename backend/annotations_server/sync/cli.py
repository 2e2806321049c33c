#!/usr/bin/env python3
"""CLI for keeping a local annotation cache in step with a running server.

Usage:
    python -m annotations_server.sync.cli \
        --server http://127.0.0.1:3846 \
        --cache ./annotations-cache.json

Examples:
    # One cycle, then exit
    python -m annotations_server.sync.cli --cache ./cache.json --once

    # Push the local cache to the server first, then reconcile every 30s
    python -m annotations_server.sync.cli --cache ./cache.json --push --interval 30
"""

import argparse
import asyncio
import logging
import os
import sys

from annotations_server.sync.caches import FileEdgeCache
from annotations_server.sync.reconciler import ReconcileResult, Reconciler
from annotations_server.sync.sources import HttpAnnotationSource

logger = logging.getLogger("annotations_server.sync")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile a local annotation cache against an annotations server."
    )
    parser.add_argument(
        "--server",
        default=os.getenv("ANNOTATIONS_SERVER_URL", "http://127.0.0.1:3846"),
        help="Server base URL",
    )
    parser.add_argument("--cache", required=True, help="Path of the local cache file")
    parser.add_argument(
        "--interval",
        type=float,
        default=float(os.getenv("RECONCILE_INTERVAL_SECONDS", "10")),
        help="Seconds between cycles",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "5")),
        help="Timeout for one fetch from the server",
    )
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--push", action="store_true", help="Push the local cache to the server before reconciling"
    )
    return parser.parse_args(argv)


def log_change(result: ReconcileResult) -> None:
    logger.info(
        f"Cache updated: {result.local_count} -> {result.remote_count} "
        f"(+{len(result.added)} / -{len(result.removed)})"
    )


async def run(args: argparse.Namespace) -> int:
    source = HttpAnnotationSource(args.server, timeout=args.timeout)
    reconciler = Reconciler(
        source,
        FileEdgeCache(args.cache),
        interval=args.interval,
        timeout=args.timeout,
    )
    reconciler.add_listener(log_change)

    try:
        if args.push:
            await reconciler.push()
        if args.once:
            result = await reconciler.reconcile_once()
            return 1 if result.skipped else 0
        await reconciler.run_forever()
        return 0
    finally:
        await source.close()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
