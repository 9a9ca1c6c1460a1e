"""Command-line entry point for Prompt Runner."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import __version__
from .config import RunnerSettings, get_settings
from .errors import ConfigLoadError, PromptRunnerError
from .project.loader import load_project_config, with_overrides
from .project.models import EVENTS_MODES, LOG_META_MODES, LOG_MODES
from .providers import get_provider
from .runner import Runner

DEFAULT_CONFIG = Path("runner_config.yaml")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the command-line runner."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-runner",
        description="Run an ordered list of LLM prompts against git repos and commit each result.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Configuration document (YAML).")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Diagnostic log level.")

    commands = parser.add_mutually_exclusive_group()
    commands.add_argument("--validate", action="store_true", help="Check configuration, prompts and commit messages.")
    commands.add_argument("--list", action="store_true", help="List prompts with their progress.")
    commands.add_argument("--dry-run", action="store_true", help="Show what would run without executing.")
    commands.add_argument("--run", action="store_true", help="Execute the selected prompts.")

    parser.add_argument("num", nargs="?", help="Prompt number to run (e.g. 01).")
    selection = parser.add_mutually_exclusive_group()
    selection.add_argument("--all", action="store_true", help="Select every prompt.")
    selection.add_argument(
        "--continue",
        dest="resume",
        action="store_true",
        help="Select prompts after the last completed one.",
    )
    selection.add_argument("--phase", type=int, help="Select every prompt in a phase.")
    parser.add_argument("--no-commit", action="store_true", help="Skip the git commit step.")

    parser.add_argument("--project-dir", type=Path, help="Override project_dir.")
    parser.add_argument(
        "--repo-override",
        action="append",
        default=[],
        metavar="NAME:PATH",
        help="Override (or add) a target repo path; repeatable.",
    )
    parser.add_argument("--log-mode", help=f"Console/log rendering: {', '.join(LOG_MODES)}.")
    parser.add_argument("--log-meta", help=f"Session header detail: {', '.join(LOG_META_MODES)}.")
    parser.add_argument("--events-mode", help=f"JSONL event log: {', '.join(EVENTS_MODES)}.")
    return parser


def resolve_config_path(args: argparse.Namespace, settings: RunnerSettings) -> Path:
    if args.config is not None:
        return args.config
    if settings.config_path is not None:
        return settings.config_path
    return DEFAULT_CONFIG


def print_config_errors(exc: ConfigLoadError) -> None:
    print("ERROR: invalid configuration:")
    for error in exc.errors:
        print(f"  - {error.field}: {error.detail!r}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if not (args.validate or args.list or args.dry_run or args.run):
        parser.print_help()
        return 1

    try:
        config = load_project_config(resolve_config_path(args, settings))
    except ConfigLoadError as exc:
        print_config_errors(exc)
        return 1

    config = with_overrides(
        config,
        project_dir=args.project_dir,
        repo_overrides=args.repo_override,
        log_mode=args.log_mode,
        log_meta=args.log_meta,
        events_mode=args.events_mode,
    )
    runner = Runner(config, provider_factory=lambda provider: get_provider(provider, settings))

    try:
        if args.validate:
            return 0 if runner.validate().ok else 1
        if args.list:
            runner.list_prompts()
            return 0

        nums = runner.build_targets(
            num=args.num,
            phase=args.phase,
            resume=args.resume,
            run_all=args.all,
        )
        if args.dry_run:
            runner.dry_run(nums, no_commit=args.no_commit)
        else:
            runner.run(nums, no_commit=args.no_commit)
        return 0
    except PromptRunnerError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {exc}")
        return 1


__all__ = ["build_parser", "configure_logging", "main"]
