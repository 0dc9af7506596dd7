"""dreamwatch command line interface."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from datetime import datetime, timezone

from .budget import format_duration, parse_budget, parse_duration
from .config import get_settings
from .errors import DreamwatchError
from .storage import clear_session, get_latest_report, is_session_alive, load_session
from .storage.reports import default_report_store
from .supervisor import SessionOptions, start_session

COMMANDS = {"start", "status", "report", "kill"}

EXAMPLES = """\
examples:
  dreamwatch "refactor auth module"
  dreamwatch "add dark mode" --budget 10 --timeout 6h
  dreamwatch status
  dreamwatch report
  dreamwatch kill
"""


def configure_logging(level: str) -> None:
    """Configure root logging for the dreamwatch process."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _clear_stale(session) -> bool:
    if is_session_alive(session):
        return False
    print("Session found but process is not running (stale session).")
    print("Cleaning up...")
    clear_session()
    return True


def cmd_status(args: argparse.Namespace) -> int:
    session = load_session()
    if session is None:
        print("No active dreamwatch session.")
        return 0
    if _clear_stale(session):
        return 0

    elapsed_ms = int((datetime.now(timezone.utc) - session.started_at).total_seconds() * 1000)
    remaining_ms = max(0, session.timeout - elapsed_ms)

    print("dreamwatch session running")
    print(f"Task: {session.task}")
    print(f"Branch: {session.branch}")
    print(f"Budget: ${session.budget:.2f}")
    print(f"Elapsed: {format_duration(elapsed_ms)}")
    print(f"Remaining: {format_duration(remaining_ms)}")
    print(f"PID: {session.pid}")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    if args.history:
        records = default_report_store().history()
        if not records:
            print("No reports found.")
            return 0
        for record in records:
            line = (
                f"{record.completed_at:%Y-%m-%d %H:%M} {record.status.value:<15} "
                f"{record.duration:>8}  {record.task}"
            )
            if record.pr_url:
                line += f"  {record.pr_url}"
            print(line)
        return 0

    report = get_latest_report()
    if report is None:
        print("No reports found.")
        return 0
    print(report)
    return 0


def cmd_kill(args: argparse.Namespace) -> int:
    session = load_session()
    if session is None:
        print("No active dreamwatch session.")
        return 0
    if _clear_stale(session):
        return 0

    print(f"Killing dreamwatch session (PID {session.pid})...")
    try:
        os.kill(session.pid, signal.SIGTERM)
    except OSError as exc:
        print(f"Failed to kill process: {exc}", file=sys.stderr)
        return 1
    print("SIGTERM sent. The process will shut down gracefully.")
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    settings = get_settings()
    budget = parse_budget(args.budget) if args.budget is not None else settings.default_budget
    timeout_ms = (
        parse_duration(args.timeout) if args.timeout is not None else settings.default_timeout_ms
    )

    existing = load_session()
    if existing is not None and not _clear_stale(existing):
        print("ERROR: A dreamwatch session is already running.", file=sys.stderr)
        print("Use 'dreamwatch kill' to stop it first.", file=sys.stderr)
        return 1

    options = SessionOptions(
        budget=budget,
        timeout_ms=timeout_ms,
        branch=args.branch,
        no_pr=args.no_pr,
    )
    return start_session(args.task, options, settings=settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dreamwatch",
        description="Overnight autonomous execution for Claude Code",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="cmd")

    p_start = sub.add_parser(
        "start",
        help="Start a new overnight session (default when a task is given)",
    )
    p_start.add_argument("task", help="Task description handed to the agent")
    p_start.add_argument("--budget", help="Max spend in USD (default: from config, $5.00)")
    p_start.add_argument(
        "--timeout",
        help="Max wall-clock time, e.g. 4h, 30m, 2h30m (default: from config, 4h)",
    )
    p_start.add_argument("--branch", help="Custom branch name")
    p_start.add_argument("--no-pr", action="store_true", help="Skip auto-PR creation")
    p_start.set_defaults(func=cmd_start)

    p_status = sub.add_parser("status", help="Check if a session is running")
    p_status.set_defaults(func=cmd_status)

    p_report = sub.add_parser("report", help="View the most recent report")
    p_report.add_argument(
        "--history", action="store_true", help="List every recorded session outcome"
    )
    p_report.set_defaults(func=cmd_report)

    p_kill = sub.add_parser("kill", help="Gracefully stop a running session")
    p_kill.set_defaults(func=cmd_kill)

    return parser


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] not in COMMANDS and argv[0] not in {"-h", "--help"}:
        argv.insert(0, "start")

    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        raise SystemExit(1)

    configure_logging(get_settings().log_level)
    try:
        exit_code = args.func(args)
    except DreamwatchError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        exit_code = 1
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
