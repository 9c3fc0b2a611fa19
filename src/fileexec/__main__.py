"""Entry point for running the collector.

Usage:
    python -m fileexec -c fileexec.yaml
    python -m fileexec -c base.yaml -c site.yaml --once --verbose 3
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from fileexec.config import load_config
from fileexec.errors import ConfigError
from fileexec.host import CollectorHost
from fileexec.logging import get_logger, setup_logging
from fileexec.metric import Metric

log = get_logger()


class StdoutOutput:
    """Writes each batch as JSON lines to stdout."""

    table = "stdout"

    def connect(self) -> None:
        pass

    def write(self, batch: list[Metric]) -> None:
        for metric in batch:
            sys.stdout.write(json.dumps(metric.to_dict()) + "\n")
        sys.stdout.flush()

    def close(self) -> None:
        pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileexec",
        description="Run commands when watched files change and collect their output as metrics.",
    )
    parser.add_argument(
        "-c", "--config", action="append", required=True,
        help="YAML config file; repeat to layer files (later wins)",
    )
    parser.add_argument("--once", action="store_true", help="record a baseline, gather once, and exit")
    parser.add_argument("--verbose", type=int, choices=range(0, 5), help="log verbosity 0-4")
    return parser


async def _run(host: CollectorHost, once: bool) -> None:
    await host.start()
    try:
        if once:
            await host.poll_once()
        else:
            await host.run()
    finally:
        host.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(*args.config)
    except ConfigError as e:
        print(f"fileexec: {e}", file=sys.stderr)
        return 2

    if args.verbose is not None:
        config.logging.verbose = args.verbose
    setup_logging(config.logging)

    if not config.inputs:
        log.error("no inputs configured")
        return 2

    host = CollectorHost(config)
    host.add_output(StdoutOutput())
    try:
        asyncio.run(_run(host, args.once))
    except KeyboardInterrupt:
        log.info("interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
