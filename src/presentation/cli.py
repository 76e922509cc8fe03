"""CLI interface for the drawing batch runner."""
import sys
import signal
import logging
import argparse
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv

from application.orchestrator import BatchOrchestrator
from application.report import format_summary, write_summary_json
from domain.exceptions import DomainException
from domain.models import ConfigurationUnavailable, ProgressEvent, ProgressKind
from infrastructure.config import SettingsLoader
from shared.logging import setup_logger, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a folder of drawings through the batch engine")
    parser.add_argument('--config', type=Path, help='Settings YAML file (default: batch_settings.yaml)')
    parser.add_argument('--input-dir', '-i', type=Path, required=True, help='Folder with drawings')
    parser.add_argument('--output-dir', '-o', type=Path, default=Path('output'),
                        help='Output folder; each run writes to a timestamped sub-folder (default: ./output)')
    parser.add_argument('--template', '-t', type=Path, help='Template configuration JSON')
    parser.add_argument('--overrides', '-c', type=Path, help='Per-drawing override table (CSV)')
    parser.add_argument('--engine', type=Path, help='Engine executable')
    parser.add_argument('--max-parallel', '-p', type=int, help='Maximum concurrent engine processes')
    parser.add_argument('--command', help='Automation command to run (must be listed in available_commands)')
    parser.add_argument('--timeout', type=float, help='Per-drawing timeout in seconds')
    parser.add_argument('--mode', choices=['batch', 'interactive'], help='Engine invocation mode')
    parser.add_argument('--temp-dir', type=Path, help='Folder for temporary job scripts')
    parser.add_argument('--check-overrides', action='store_true',
                        help='List drawings without an override row and exit')
    parser.add_argument('--dry-run', action='store_true',
                        help='Resolve every configuration without starting the engine')
    parser.add_argument('--summary-json', type=Path, help='Also write the run summary as JSON')
    parser.add_argument('--log-file', type=Path, help='Also write logs to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose')
    return parser


def _log_progress(event: ProgressEvent) -> None:
    if event.kind is ProgressKind.JOB_FINISHED:
        get_logger(__name__).info(f"Progress: {event.completed}/{event.total}")


def _dry_run(orchestrator: BatchOrchestrator, input_dir: Path, logger: logging.Logger) -> int:
    unavailable = 0
    for item, resolution in orchestrator.dry_run(input_dir):
        if isinstance(resolution, ConfigurationUnavailable):
            unavailable += 1
            logger.warning(f"[SKIP] {item.identity}: {resolution.reason}")
        else:
            strategy = resolution.match_strategy.value if resolution.match_strategy else "none"
            logger.info(f"[OK] {item.identity}: {resolution.source} (match: {strategy})")
    return 1 if unavailable else 0


def _check_overrides(orchestrator: BatchOrchestrator, input_dir: Path, logger: logging.Logger) -> int:
    missing = orchestrator.find_items_without_overrides(input_dir)
    if not missing:
        logger.info("[OK] Every drawing has an override row")
        return 0
    logger.warning(f"[WARN] {len(missing)} drawing(s) without an override row:")
    for item in missing:
        logger.warning(f"  - {item.identity}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logger(level=log_level, log_file=args.log_file)
    logger = get_logger(__name__)

    previous_handler = None
    try:
        loader = SettingsLoader(config_path=args.config)
        overrides = {
            'engine_path': args.engine,
            'max_parallel': args.max_parallel,
            'main_command': args.command,
            'timeout_seconds': args.timeout,
            'mode': args.mode,
            'temp_script_dir': args.temp_dir,
            'verbose': True if args.verbose else None,
        }
        settings = loader.load(overrides=overrides)

        if settings.log_file and not args.log_file:
            setup_logger(level=log_level, log_file=settings.log_file)

        orchestrator = BatchOrchestrator.from_settings(
            settings,
            template_path=args.template,
            overrides_path=args.overrides,
            progress=_log_progress,
        )

        if args.check_overrides:
            return _check_overrides(orchestrator, args.input_dir, logger)

        if args.dry_run:
            return _dry_run(orchestrator, args.input_dir, logger)

        logger.info("=" * 60)
        logger.info("Drawing Batch Runner")
        logger.info(f"Engine: {settings.engine_path}")
        logger.info(f"Command: {settings.main_command}")
        logger.info(f"Mode: {settings.mode}")
        logger.info(f"Input: {args.input_dir}")
        logger.info(f"Template: {args.template or '-'}")
        logger.info(f"Overrides: {args.overrides or '-'}")
        logger.info("=" * 60)

        def on_interrupt(signum, frame):
            logger.warning("Interrupted - cancelling run (press Ctrl+C again to abort)")
            signal.signal(signal.SIGINT, signal.default_int_handler)
            orchestrator.cancel()

        previous_handler = signal.signal(signal.SIGINT, on_interrupt)

        summary = orchestrator.run_sync(args.input_dir, args.output_dir)

        for line in format_summary(summary).splitlines():
            logger.info(line)

        if args.summary_json:
            write_summary_json(summary, args.summary_json)

        if summary.cancelled:
            return 130
        return 0 if summary.all_successful else 1

    except DomainException as e:
        logger.error(f"Batch error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
