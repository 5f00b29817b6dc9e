"""Command line interface for auto-tidy."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from .config import Configuration, ConfigurationError, load_config, validate_config
from .engine import Engine
from .file_mover import FileTransferResolver
from .logger import configure_logging, log_event, next_log_path
from .models import ScanContext
from .realtime_watcher import DirectoryWatcher, default_observer_factory
from .strategies import DuplicateDetectionStrategy

LOGGER = logging.getLogger("auto_tidy.cli")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "handler"):
        parser.print_help()
        return 1
    return args.handler(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autotidy", description="Keep monitored folders tidy")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Watch folders and run scheduled tasks")
    run_parser.add_argument("--config", type=Path, required=True)
    run_parser.add_argument("--log-file", type=Path, help="Write JSON logs to this file (default: ~/.autotidy/logs/run-<timestamp>.log)")
    run_parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    run_parser.add_argument(
        "--polling", action="store_true", help="Use the polling observer instead of native events"
    )
    run_parser.set_defaults(handler=_handle_run)

    validate_parser = subparsers.add_parser("validate", help="Validate a configuration file")
    validate_parser.add_argument("config_file", type=Path)
    validate_parser.set_defaults(handler=_handle_validate)

    dedup_parser = subparsers.add_parser("dedup", help="Run one duplicate detection pass")
    dedup_parser.add_argument("--config", type=Path, required=True)
    dedup_parser.add_argument("--output", type=Path, help="Folder for duplicates_report.json/.txt")
    dedup_parser.add_argument(
        "--report-only", action="store_true", help="Report duplicates without removing any"
    )
    dedup_parser.set_defaults(handler=_handle_dedup)

    return parser


def _load(path: Path) -> tuple[Configuration, list[str]]:
    config = load_config(path)
    warnings = validate_config(config)
    return config, warnings


def _handle_run(args: argparse.Namespace) -> int:
    log_path = args.log_file or next_log_path("run")
    logger = configure_logging(log_path, level=logging.DEBUG if args.verbose else logging.INFO)
    print(f"Logging to {log_path}")
    try:
        config, warnings = _load(args.config)
    except ConfigurationError as exc:
        log_event(
            LOGGER,
            level=logging.ERROR,
            action="cli.config_invalid",
            message=str(exc),
            extra={"path": str(args.config)},
        )
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    for warning in warnings:
        log_event(LOGGER, level=logging.WARNING, action="cli.config_warning", message=warning)

    watcher = DirectoryWatcher(observer_factory=default_observer_factory(args.polling))
    engine = Engine(config, watcher=watcher)

    def _request_stop(signum: int, _frame: object) -> None:
        log_event(
            logger,
            level=logging.INFO,
            action="cli.signal",
            message=f"Received {signal.Signals(signum).name}; shutting down",
        )
        engine.stop()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    engine.start()
    return 0


def _handle_validate(args: argparse.Namespace) -> int:
    try:
        _, warnings = _load(args.config_file)
    except ConfigurationError as exc:
        print(f"Validation failed: {exc}", file=sys.stderr)
        return 1
    for warning in warnings:
        print(f"Warning: {warning}")
    print("Configuration is valid.")
    return 0


def _handle_dedup(args: argparse.Namespace) -> int:
    configure_logging()
    try:
        config, _ = _load(args.config)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    rules = config.duplicate_detection.rules
    if args.report_only:
        rules = dataclasses.replace(rules, auto_remove=False)
    if args.output:
        rules = dataclasses.replace(rules, report_destination=args.output)

    strategy = DuplicateDetectionStrategy(rules, FileTransferResolver())
    report = strategy.execute(ScanContext(folders=config.monitor_folders))

    if not report.groups:
        print(f"No duplicates found in {report.scanned_files} file(s).")
        return 0
    for group in report.groups:
        print(f"{group.digest[:12]}  {group.count} files, {group.wasted_bytes} bytes wasted")
        for record in group.records:
            print(f"  - {record.path}")
    print(
        f"{len(report.groups)} group(s), {report.duplicate_files} duplicate file(s), "
        f"{report.total_wasted_bytes} bytes recoverable"
    )
    if rules.report_destination is not None:
        print(f"Report written to {rules.report_destination}")
    return 0


__all__ = ["main"]
