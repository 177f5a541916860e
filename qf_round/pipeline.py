"""
qf_round/pipeline.py: Replay a round scenario end to end.

A scenario is a JSON document describing one round:

    {
      "round": "Q3 community round",
      "start": {"height": 100, "time": 1700000000},
      "accounts": {"admin": [{"denom": "ucosm", "amount": "1000"}], ...},
      "instantiate": {"sender": "admin",
                      "funds": [{"denom": "ucosm", "amount": "1000"}],
                      "msg": {...InstantiateMsg...}},
      "steps": [
        {"sender": "alice", "msg": {"create_proposal": {...}}},
        {"advance_blocks": 10},
        {"sender": "bob", "msg": {"vote_proposal": {"proposal_id": 1}},
         "funds": [{"denom": "ucosm", "amount": "100"}]},
        {"sender": "eve", "msg": {"vote_proposal": {"proposal_id": 9}},
         "funds": [...], "expect_error": "not_found"}
      ]
    }

Usage:
    from qf_round.pipeline import load_scenario, run_scenario
    result = run_scenario(load_scenario("round.json"))
    print(result.plan.as_mapping())
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.engine.messages import (
    AllProposals,
    Distribution,
    PreviewDistribution,
    RoundStatus,
    TriggerDistribution,
    parse_execute_msg,
    parse_instantiate_msg,
)
from qf_round.errors import InvalidInput, RoundError
from qf_round.host import LocalHost, parse_funds
from qf_round.reports.round_report import (
    RoundReport,
    build_payout_frame,
    build_vote_frame,
    export_report_markdown,
    summarize_round,
)
from qf_round.state.models import PayoutPlan, Proposal
from qf_round.storage.ledger import LedgerStore

logger = logging.getLogger(__name__)


class ScenarioError(ValueError):
    """A step's outcome differs from what the scenario expects."""


@dataclass
class StepOutcome:
    """
    Fields:
        index:       Position of the step in the scenario (0-based).
        action:      Message tag, or 'advance_blocks'.
        sender:      Caller address ('' for clock steps).
        ok:          True if the engine accepted the action.
        error_kind:  RoundError.kind when rejected.
        detail:      Error message or response attributes.
    """

    index: int
    action: str
    sender: str
    ok: bool
    error_kind: Optional[str] = None
    detail: str = ""


@dataclass
class ScenarioResult:
    round_label: str
    host: LocalHost
    proposals: list[Proposal]
    plan: Optional[PayoutPlan]
    committed: bool
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def rejected(self) -> list[StepOutcome]:
        return [s for s in self.steps if not s.ok]


def load_scenario(path: str) -> dict:
    with open(path, encoding="utf-8") as fh:
        scenario = json.load(fh)
    if not isinstance(scenario, dict):
        raise InvalidInput(f"{path}: scenario must be a JSON object")
    return scenario


def validate_scenario(scenario: dict) -> int:
    """Parse every message without executing anything. Returns the step count."""
    inst = scenario.get("instantiate")
    if not isinstance(inst, dict):
        raise InvalidInput("scenario needs an 'instantiate' object")
    parse_instantiate_msg(inst.get("msg", {}))
    parse_funds(inst.get("funds"))
    for funds in (scenario.get("accounts") or {}).values():
        parse_funds(funds)
    steps = scenario.get("steps") or []
    for i, step in enumerate(steps):
        if "advance_blocks" in step:
            continue
        if "msg" not in step or "sender" not in step:
            raise InvalidInput(f"step {i}: needs 'sender' and 'msg' (or 'advance_blocks')")
        parse_execute_msg(step["msg"])
        parse_funds(step.get("funds"))
    return len(steps)


def _message_tag(raw: dict) -> str:
    return next(iter(raw)) if isinstance(raw, dict) and raw else "?"


def run_scenario(
    scenario: dict,
    config: EngineConfig = DEFAULT_CONFIG,
    commit_distribution: bool = True,
    strict: bool = True,
) -> ScenarioResult:
    """
    Execute a scenario against a fresh LocalHost.

    Args:
        scenario:             Parsed scenario document.
        config:               EngineConfig for the engine.
        commit_distribution:  If False, trigger_distribution steps are skipped
                              and ``plan`` is the planning preview instead.
        strict:               Raise ScenarioError when a step's outcome does
                              not match its ``expect_error`` (or lack of it).

    Returns:
        ScenarioResult with every step outcome, the final proposals and the
        committed (or previewed) payout plan.
    """
    validate_scenario(scenario)
    label = scenario.get("round") or "unnamed round"
    start = scenario.get("start") or {}
    host = LocalHost(
        height=int(start.get("height", 1)),
        time=int(start.get("time", 1_700_000_000)),
        block_seconds=int(start.get("block_seconds", 5)),
        config=config,
    )

    for account, funds in (scenario.get("accounts") or {}).items():
        for coin in parse_funds(funds):
            host.bank.mint(account, coin)

    inst = scenario["instantiate"]
    host.instantiate(
        inst.get("sender", "admin"),
        parse_instantiate_msg(inst["msg"]),
        parse_funds(inst.get("funds")),
    )

    outcomes: list[StepOutcome] = []
    for i, step in enumerate(scenario.get("steps") or []):
        if "advance_blocks" in step:
            env = host.advance_blocks(int(step["advance_blocks"]))
            outcomes.append(
                StepOutcome(i, "advance_blocks", "", True, detail=f"height={env.height}")
            )
            continue

        msg = parse_execute_msg(step["msg"])
        action = _message_tag(step["msg"])
        if isinstance(msg, TriggerDistribution) and not commit_distribution:
            outcomes.append(StepOutcome(i, action, step["sender"], True, detail="skipped (preview)"))
            continue

        expected = step.get("expect_error")
        try:
            response = host.execute(step["sender"], msg, parse_funds(step.get("funds")))
        except RoundError as exc:
            outcome = StepOutcome(i, action, step["sender"], False, exc.kind, exc.message)
        else:
            detail = ", ".join(f"{k}={v}" for k, v in response.attributes)
            outcome = StepOutcome(i, action, step["sender"], True, detail=detail)
        outcomes.append(outcome)

        if strict and outcome.error_kind != expected:
            raise ScenarioError(
                f"step {i} ({action} by {step['sender']}): expected "
                f"{expected or 'success'}, got {outcome.error_kind or 'success'}"
                + (f" ({outcome.detail})" if not outcome.ok else "")
            )

    proposals = host.query(AllProposals())
    try:
        plan = host.query(Distribution())
        committed = True
    except RoundError:
        plan = host.query(PreviewDistribution())
        committed = False

    logger.info(
        "Scenario %r: %d steps, %d rejected, %d proposals, distribution %s.",
        label, len(outcomes), sum(1 for s in outcomes if not s.ok), len(proposals),
        "committed" if committed else "previewed",
    )
    return ScenarioResult(
        round_label=label,
        host=host,
        proposals=proposals,
        plan=plan,
        committed=committed,
        steps=outcomes,
    )


def export_round_outputs(
    result: ScenarioResult,
    report_path: Optional[str] = None,
    figures_dir: Optional[str] = None,
    generate_figures: bool = True,
) -> tuple[RoundReport, Optional[str]]:
    """
    Build the round report for a replayed scenario, optionally writing it.

    Args:
        result:            Output of run_scenario().
        report_path:       If provided, the Markdown report is written here.
        figures_dir:       Directory for the payout figure (defaults to the
                           engine config's figures_dir).
        generate_figures:  Skip the matplotlib figure when False.

    Returns:
        (RoundReport, figure path or None).
    """
    host = result.host
    status = host.query(RoundStatus())
    votes = build_vote_frame(LedgerStore(host.store, host.config).votes())
    frame = build_payout_frame(result.proposals, result.plan, votes)
    report = summarize_round(
        result.round_label, status.config, status.phase, result.plan, frame, votes, result.committed
    )

    figure_path = None
    if generate_figures:
        from qf_round.viz.figures import plot_payouts

        figure_path = plot_payouts(
            frame,
            figures_dir or host.config.figures_dir,
            title=f"{result.round_label}: payouts",
        )

    if report_path:
        export_report_markdown(report, frame, report_path, figure_path=figure_path)
        logger.info("Round report exported to %s.", report_path)
    return report, figure_path
