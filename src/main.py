# src/main.py - v2
"""CLI entry point - generate, profile, ledger, golden commands.

Usage:
    draftsmith generate <job-file> [options]
    draftsmith profile
    draftsmith ledger
    draftsmith golden <sample-file>...
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from draftsmith.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from draftsmith.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
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
        prog="draftsmith",
        description=f"draftsmith v{__version__} - proposal drafts in your own voice",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- generate ---
    p_generate = subparsers.add_parser(
        "generate", help="Draft a proposal for a job description",
    )
    p_generate.add_argument(
        "job_file", type=Path,
        help="Job description (.txt raw text or .json job record)",
    )
    p_generate.add_argument(
        "--requester", default="cli",
        help="Requester id used for the cooldown (default: cli)",
    )
    p_generate.add_argument(
        "-t", "--template", default=None,
        help="Template id (default: selected from the job)",
    )
    p_generate.add_argument(
        "--budget-override", action="store_true",
        help="Generate even when a cost ceiling is reached (audited)",
    )
    p_generate.add_argument(
        "--pause-override", action="store_true",
        help="Submit even while the global pause is active (audited)",
    )
    p_generate.add_argument(
        "--reason", default="",
        help="Reason recorded with an override",
    )
    p_generate.set_defaults(func=_cmd_generate)

    # --- profile ---
    p_profile = subparsers.add_parser(
        "profile", help="Show the current style profile",
    )
    p_profile.set_defaults(func=_cmd_profile)

    # --- ledger ---
    p_ledger = subparsers.add_parser(
        "ledger", help="Show spend against the cost ceilings",
    )
    p_ledger.set_defaults(func=_cmd_ledger)

    # --- golden ---
    p_golden = subparsers.add_parser(
        "golden", help="Replace the golden sample set",
    )
    p_golden.add_argument("files", type=Path, nargs="*", help="Sample text files")
    p_golden.set_defaults(func=_cmd_golden)

    return parser


async def _cmd_generate(args: argparse.Namespace, settings) -> int:
    """Stream one draft to stdout."""
    from draftsmith.api.facade import Draftsmith
    from draftsmith.core.errors import PipelineError
    from draftsmith.core.models import GenerationRequest
    from draftsmith.pipeline.events import TokenBatch

    job_file: Path = args.job_file
    if not job_file.exists():
        logger.error("File not found: %s", job_file)
        return 1
    job = _load_job(job_file)

    async with Draftsmith.from_settings(settings) as app:
        request = GenerationRequest(
            requester_id=args.requester,
            job=job,
            template_id=args.template,
            budget_override=args.budget_override,
            pause_override=args.pause_override,
            override_reason=args.reason,
        )
        try:
            handle = await app.submit(request)
        except PipelineError as exc:
            logger.error("Request rejected: %s", exc)
            return 1

        async for event in handle.events():
            if isinstance(event, TokenBatch):
                sys.stdout.write(event.text)
                sys.stdout.flush()
        run = await handle.result()

    print()
    _print_run_summary(run)
    return 0 if run.status in ("completed", "degraded") else 1


async def _cmd_profile(args: argparse.Namespace, settings) -> int:
    from draftsmith.api.facade import Draftsmith

    async with Draftsmith.from_settings(settings) as app:
        load = await app.profile()

    profile = load.profile
    state = "cold start" if load.cold_start else "degraded" if load.degraded else f"v{profile.version}"
    print(f"\nStyle profile ({profile.category}, {state}):")
    print(f"  Weights:      explicit {profile.explicit_weight:.2f} / implicit {profile.implicit_weight:.2f}")
    print(f"  Implicit:     {'active' if profile.implicit_active else 'inactive'} "
          f"({profile.implicit_sample_count} edited proposals)")
    for name, value in profile.combined.dimensions().items():
        print(f"  {name:22s} {value:6.2f}")
    if profile.combined.common_phrases:
        print(f"  Phrases:      {', '.join(profile.combined.common_phrases)}")
    if profile.recalibration_needed:
        print(f"  Drift:        {profile.drift_distance:.2f} - recalibration suggested")
    return 0


async def _cmd_ledger(args: argparse.Namespace, settings) -> int:
    from draftsmith.api.facade import Draftsmith

    async with Draftsmith.from_settings(settings) as app:
        totals = app.ledger_totals()
        status = app.budget_status()

    print(f"\nCost ledger ({status.level}):")
    print(f"  Today:   ${totals.daily_usd:.4f} / ${settings.cost_daily_ceiling_usd:.2f}"
          f"  ({totals.daily_tokens} tokens)")
    print(f"  Month:   ${totals.monthly_usd:.4f} / ${settings.cost_monthly_ceiling_usd:.2f}"
          f"  ({totals.monthly_tokens} tokens)")
    print(f"  Entries: {totals.entry_count}")
    return 0


async def _cmd_golden(args: argparse.Namespace, settings) -> int:
    from draftsmith.api.facade import Draftsmith
    from draftsmith.core.errors import ValidationError

    texts = []
    for path in args.files:
        if not path.exists():
            logger.error("File not found: %s", path)
            return 1
        texts.append(path.read_text(encoding="utf-8"))

    async with Draftsmith.from_settings(settings) as app:
        try:
            samples = await app.set_golden_samples(texts)
        except ValidationError as exc:
            logger.error("Golden samples rejected: %s", exc)
            return 1
    print(f"Golden set replaced ({len(samples)} sample(s))")
    return 0


def _load_job(path: Path):
    """Read a job record: JSON object or plain text."""
    from draftsmith.core.models import JobInput

    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return JobInput.model_validate(json.loads(content))
    return JobInput(raw_text=content)


def _print_run_summary(run) -> None:
    print(f"\nRun {run.run_id}: {run.status}")
    if run.template_id:
        print(f"  Template:   {run.template_id}")
    if run.markers:
        print(f"  Markers:    {', '.join(run.markers)}")
    if run.fallback_stages:
        print(f"  Fallbacks:  {', '.join(run.fallback_stages)}")
    if run.risk is not None:
        print(f"  Risk:       {run.risk.level} ({len(run.risk.flagged)} flagged)")
    if run.error is not None:
        print(f"  Error:      {run.error.kind} - {run.error.message}")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from draftsmith.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text" if verbose else settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
