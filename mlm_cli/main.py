"""Command line front-end: preflight analysis and running units."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Sequence

import yaml

from mlm_core import __version__
from mlm_core.analyzer import AnalysisReport
from mlm_core.config import KernelConfig
from mlm_core.errors import KernelError
from mlm_core.kernel import Kernel

logger = logging.getLogger("mlm_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mlm",
        description="Install, start and inspect MLM units.",
    )
    parser.add_argument("--version", action="version", version=f"mlm v{__version__}")
    parser.add_argument("--units-package", dest="units_package", help="package holding unit modules")
    parser.add_argument(
        "--units-dir",
        dest="units_dirs",
        action="append",
        help="extra import path for unit modules (repeatable)",
    )
    parser.add_argument(
        "--strict",
        action="store_const",
        const=True,
        default=None,
        help="reject unit fields that match no registered pipeline",
    )
    parser.add_argument("--log-level", dest="log_level", help="logging level (default WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="preflight the dependency graph of units")
    analyze.add_argument("names", nargs="+", help="unit names, in start order")
    analyze.add_argument(
        "--format",
        choices=("text", "json", "yaml"),
        default="text",
        dest="output_format",
    )
    analyze.set_defaults(func=_handle_analyze)

    run = subparsers.add_parser("run", help="start units and stop them on SIGINT/SIGTERM")
    run.add_argument("names", nargs="+", help="unit names, in start order")
    run.add_argument("--once", action="store_true", help="stop right after a successful start")
    run.set_defaults(func=_handle_run)

    return parser


def main(argv: Sequence[str] | None = None, *, start_dir: Path | str | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    config = KernelConfig.resolve(
        overrides={
            "units_package": args.units_package,
            "units_dirs": args.units_dirs,
            "strict": args.strict,
            "log_level": args.log_level,
        },
        start_dir=Path(start_dir) if start_dir else None,
    )
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(args.func(args, config))
    except KernelError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


async def _handle_analyze(args: argparse.Namespace, config: KernelConfig) -> int:
    report = await Kernel.from_config(config).analyze(*args.names)
    if args.output_format == "json":
        print(json.dumps(report.as_dict(), indent=2))
    elif args.output_format == "yaml":
        print(yaml.safe_dump(report.as_dict(), sort_keys=False), end="")
    else:
        _print_report(report)
    return 0 if report.success else 1


def _print_report(report: AnalysisReport) -> None:
    print("Install order:")
    for position, name in enumerate(report.order, start=1):
        print(f"  {position:>2}. {name}")
    if report.tags:
        print("Tags:")
        for tag, owner in sorted(report.tags.items()):
            print(f"  {tag:<24} {owner}")
    if report.errors:
        print("Errors:")
        for error in report.errors:
            print(f"  - {error}")


async def _handle_run(args: argparse.Namespace, config: KernelConfig) -> int:
    kernel = Kernel.from_config(config)
    await kernel.start(*args.names)
    print(f"started: {', '.join(kernel.units)}")
    try:
        if not args.once:
            await _wait_for_signal()
    finally:
        await kernel.stop()
    print("stopped")
    return 0


async def _wait_for_signal() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # not available on every platform; Ctrl-C then surfaces as cancellation
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    logger.info("running, waiting for SIGINT/SIGTERM")
    await stop.wait()
