# src/main.py — v1
"""CLI entry point — run, resume, status, cache-clear commands.

Usage:
    genflow run --project <dir> --idea <text> --generator <module:attr> [options]
    genflow resume --project <dir> --idea <text> --generator <module:attr> [options]
    genflow status --project <dir>
    genflow cache-clear [--cache-dir <dir>]

The generation backend is loaded from ``module:attr``: either a coroutine
function ``(prompt, options) -> str``, an object with ``generate``, or a class
instantiated without arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import sys
from pathlib import Path
from typing import Any

from genflow.config.settings import Settings, load_settings
from genflow.logging.logger import setup_logging
from genflow.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
    except Exception as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="genflow",
        description=f"genflow v{__version__} — Resumable multi-step content generation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run / resume ---
    p_run = subparsers.add_parser("run", help="Run the workflow from the first step")
    _add_workflow_arguments(p_run)
    p_run.set_defaults(func=_cmd_run)

    p_resume = subparsers.add_parser(
        "resume", help="Resume the workflow from saved checkpoints",
    )
    _add_workflow_arguments(p_resume)
    p_resume.set_defaults(func=_cmd_resume)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show checkpoint progress")
    p_status.add_argument(
        "--project", type=Path, required=True, help="Project directory",
    )
    p_status.set_defaults(func=_cmd_status)

    # --- cache-clear ---
    p_cache = subparsers.add_parser("cache-clear", help="Delete cached responses")
    p_cache.add_argument(
        "--cache-dir", type=Path, default=None,
        help="Cache directory (default: GENFLOW_CACHE_DIR)",
    )
    p_cache.set_defaults(func=_cmd_cache_clear)

    return parser


def _add_workflow_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--project", type=Path, required=True, help="Project directory",
    )
    parser.add_argument(
        "--idea", required=True, help="Project idea fed to every step",
    )
    parser.add_argument(
        "--generator", required=True,
        help="Generation backend as module:attr",
    )
    parser.add_argument(
        "--mode", choices=["auto", "manual", "skip"], default=None,
        help="Automation mode for every pending step (default: GENFLOW_DEFAULT_AUTOMATION_MODE)",
    )
    parser.add_argument(
        "--no-cache", action="store_true",
        help="Bypass the response cache",
    )


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the workflow from scratch."""
    return await _run(args, settings, resume=False)


async def _cmd_resume(args: argparse.Namespace, settings: Settings) -> int:
    """Continue the workflow from checkpoints."""
    return await _run(args, settings, resume=True)


async def _run(args: argparse.Namespace, settings: Settings, resume: bool) -> int:
    from genflow.api.facade import run_workflow
    from genflow.pipeline.models import AutomationMode

    generator = _load_generator(args.generator)
    mode = AutomationMode(args.mode) if args.mode else None

    logger.info("%s workflow in %s", "Resuming" if resume else "Starting", args.project)
    result = await run_workflow(
        args.project,
        args.idea,
        generator,
        settings=settings,
        automation_mode=mode,
        resume=resume,
        use_cache=not args.no_cache,
        on_progress=_print_progress,
    )

    print("\nWorkflow finished:")
    print(f"  Success:    {result.success}")
    print(f"  Completed:  {result.completed_count}")
    print(f"  Skipped:    {result.skipped_count}")
    print(f"  Duration:   {result.duration_ms / 1000:.1f}s")
    if result.failed_step:
        print(f"  Failed at:  {result.failed_step}")
        print(f"  Error:      {result.error}")
        print(f"\nRun 'genflow resume --project {args.project} ...' to continue.")
    if result.cancelled:
        print("  Cancelled before completion")
    return 0 if result.success else 1


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Display checkpoint-derived progress."""
    from genflow.api.facade import get_status

    project: Path = args.project
    if not project.is_dir():
        logger.error("Not a directory: %s", project)
        return 1

    report = await get_status(project, settings=settings)
    progress = report.progress

    print(f"\nStatus for {report.project_path}:")
    print(f"  Progress:   {progress.done}/{progress.total} ({progress.percent}%)")
    for entry in report.steps:
        line = f"  [{entry.status.value:<11}] {entry.step_id}"
        if entry.attempts:
            line += f"  ({entry.attempts} attempt(s))"
        if entry.error:
            line += f"  error: {entry.error}"
        print(line)
    if report.next_step:
        print(f"  Next step:  {report.next_step}")
    if report.last_error:
        snapshot = report.last_error
        print(f"\nLast failure at {snapshot.failed_step} ({snapshot.attempts} attempt(s)):")
        print(f"  {snapshot.error_message}")
    return 0


async def _cmd_cache_clear(args: argparse.Namespace, settings: Settings) -> int:
    """Remove every cached response from disk."""
    from genflow.cache.cache import ResponseCache
    from genflow.cache.json_store import JsonCacheStore

    cache_dir: Path = args.cache_dir or settings.cache_dir
    cache = ResponseCache(store=JsonCacheStore(cache_dir))
    removed = await cache.clear()
    print(f"Removed {removed} cached response(s) from {cache_dir}")
    return 0


def _load_generator(reference: str) -> Any:
    """Import a generation backend from ``module:attr``.

    Raises:
        ValueError: If the reference is malformed or the attribute is missing.
    """
    module_path, sep, attr = reference.partition(":")
    if not sep or not module_path or not attr:
        raise ValueError(f"Invalid generator {reference!r}, expected module:attr")

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ValueError(f"Cannot import module {module_path}: {exc}") from exc

    target = getattr(module, attr, None)
    if target is None:
        raise ValueError(f"{attr} not found in {module_path}")

    if isinstance(target, type):
        return target()
    if not callable(target) and not hasattr(target, "generate"):
        raise ValueError(f"{reference} is not a generator")
    return target


def _print_progress(index: int, total: int, step_id: str) -> None:
    print(f"[{index}/{total}] {step_id}")


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
