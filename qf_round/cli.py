"""
qf_round/cli.py: Command-line interface for replaying quadratic funding rounds.

Every command takes a scenario JSON file (see qf_round.pipeline) and:
  simulate   replays it, commits the distribution and writes a report + figure
  preview    replays it without committing and prints the planned payouts
  validate   parses every message without executing anything

Usage:
    python -m qf_round simulate round.json
    python -m qf_round preview round.json
    python -m qf_round validate round.json

QF_LOG_LEVEL is read from .env in the repo root (or --env-file) and used
when --log-level is not given.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path


# ── .env loader ──────────────────────────────────────────────────────────────

def _load_dotenv(env_file: str | None = None) -> dict[str, str]:
    """Export QF_* settings from a .env file without overriding the environment.

    Args:
        env_file: Explicit path; defaults to .env in the repo root.

    Returns:
        The QF_* keys that were newly set.
    """
    path = Path(env_file) if env_file else Path(__file__).parent.parent / ".env"
    if not path.is_file():
        return {}

    loaded: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        key = key.strip()
        if not sep or not key.startswith("QF_") or key in os.environ:
            continue
        os.environ[key] = loaded[key] = value.strip().strip("\"'")
    return loaded


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str | None = None) -> None:
    """Configure the root logger; falls back to QF_LOG_LEVEL, then INFO."""
    level = level or os.environ.get("QF_LOG_LEVEL", "INFO")
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"
    logging.basicConfig(level=numeric, format=fmt, datefmt="%H:%M:%S", stream=sys.stderr)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)


logger = logging.getLogger("qf_round.cli")


def _prepare(args: argparse.Namespace) -> None:
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)


def _print_plan(plan, proposals) -> None:
    titles = {p.id: p.title for p in proposals}
    print(f"  {'ID':>4}  {'Title':<24} {'Collected':>12} {'Match':>12} {'Payout':>12}")
    for line in plan.proposals:
        title = titles.get(line.proposal_id, "")[:24]
        print(
            f"  {line.proposal_id:>4}  {title:<24} {line.collected_funds:>12} "
            f"{line.match:>12} {line.amount:>12}"
        )
    print(f"  Leftover -> {plan.leftover_addr}: {plan.leftover}{plan.denom}")
    print(f"  Total paid : {plan.total}{plan.denom}")


def _print_rejected(result) -> None:
    if not result.rejected:
        return
    print(f"\n  Rejected steps ({len(result.rejected)}):")
    for step in result.rejected:
        print(f"    [{step.index}] {step.action} by {step.sender}: {step.error_kind} ({step.detail})")


# ── Subcommand: simulate ──────────────────────────────────────────────────────

def cmd_simulate(args: argparse.Namespace) -> int:
    """Replay a scenario, commit the distribution and export the report."""
    _prepare(args)

    from qf_round.config import DEFAULT_CONFIG
    from qf_round.pipeline import export_round_outputs, load_scenario, run_scenario

    scenario = load_scenario(args.scenario)
    result = run_scenario(scenario, strict=not args.lenient)

    report_path = args.report_path or os.path.join(
        DEFAULT_CONFIG.report_dir,
        f"round_{datetime.now(tz=timezone.utc).strftime('%Y%m%d_%H%M%S')}.md",
    )
    report, figure_path = export_round_outputs(
        result,
        report_path=report_path,
        figures_dir=args.figures_dir,
        generate_figures=not args.no_figures,
    )

    print()
    print("=" * 60)
    print(f"  ROUND SIMULATED: {result.round_label}")
    print("=" * 60)
    print(f"  Phase            : {report.phase}")
    print(f"  Distribution     : {'committed' if result.committed else 'preview only'}")
    print(f"  Steps            : {len(result.steps)} ({len(result.rejected)} rejected)")
    print(f"  Proposals        : {report.proposal_count}")
    print(f"  Votes            : {report.vote_count}")
    print()
    _print_plan(result.plan, result.proposals)
    _print_rejected(result)
    print()
    print(f"  Report saved to  : {report_path}")
    print(f"  Figure           : {figure_path or 'none generated'}")
    print("=" * 60)
    return 0


# ── Subcommand: preview ───────────────────────────────────────────────────────

def cmd_preview(args: argparse.Namespace) -> int:
    """Replay a scenario without committing, then print the planned payouts."""
    _prepare(args)

    from qf_round.pipeline import load_scenario, run_scenario

    result = run_scenario(
        load_scenario(args.scenario),
        commit_distribution=False,
        strict=not args.lenient,
    )

    print()
    print("=" * 60)
    print(f"  DISTRIBUTION PREVIEW: {result.round_label}")
    print("=" * 60)
    _print_plan(result.plan, result.proposals)
    _print_rejected(result)
    print("=" * 60)
    return 0


# ── Subcommand: validate ──────────────────────────────────────────────────────

def cmd_validate(args: argparse.Namespace) -> int:
    """Parse every message of a scenario without executing it."""
    _prepare(args)

    from qf_round.pipeline import load_scenario, validate_scenario

    steps = validate_scenario(load_scenario(args.scenario))
    print(f"{args.scenario}: OK ({steps} steps)")
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qf-round",
        description="Quadratic funding round engine: replay, preview and validate rounds.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a round, commit the distribution, write report and figure
  python -m qf_round simulate round.json --report-path reports/round.md

  # Show the payouts a round would produce right now
  python -m qf_round preview round.json

  # Check a scenario file without executing it
  python -m qf_round validate round.json
        """,
    )

    parser.add_argument(
        "--env-file",
        default=None,
        metavar="PATH",
        help="Path to .env file (default: auto-detect .env in repo root)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: QF_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_scenario_flags(p: argparse.ArgumentParser, replay: bool = True) -> None:
        p.add_argument("scenario", metavar="SCENARIO.json", help="Scenario file")
        if replay:
            p.add_argument(
                "--lenient",
                action="store_true",
                help="Record unexpected step outcomes instead of aborting",
            )

    p_sim = subparsers.add_parser("simulate", help="Replay, distribute and export a report")
    add_scenario_flags(p_sim)
    p_sim.add_argument(
        "--report-path",
        default=None,
        metavar="PATH",
        help="Markdown report output path (default: auto-named under reports/)",
    )
    p_sim.add_argument(
        "--figures-dir",
        default=None,
        metavar="PATH",
        help="Directory for the payout figure (default: reports/figures)",
    )
    p_sim.add_argument("--no-figures", action="store_true", help="Skip figure generation")
    p_sim.set_defaults(func=cmd_simulate)

    p_prev = subparsers.add_parser("preview", help="Replay without committing; print payouts")
    add_scenario_flags(p_prev)
    p_prev.set_defaults(func=cmd_preview)

    p_val = subparsers.add_parser("validate", help="Parse a scenario without executing it")
    add_scenario_flags(p_val, replay=False)
    p_val.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    from qf_round.errors import RoundError
    from qf_round.pipeline import ScenarioError

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except RoundError as exc:
        logger.error("%s: %s", exc.kind, exc.message)
        print(f"error [{exc.kind}]: {exc.message}", file=sys.stderr)
        return 2
    except ScenarioError as exc:
        logger.error("Scenario mismatch: %s", exc)
        print(f"error [scenario]: {exc}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"error [input]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
