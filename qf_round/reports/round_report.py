"""
qf_round/reports/round_report.py: Round summary and payout report.

Builds a per-proposal payout table from the stored proposals, votes and the
committed (or previewed) payout plan, summarises the round, and exports a
Markdown report suitable for publishing next to the on-ledger result.

Amount columns use the object dtype so that values beyond the int64 range are
kept exactly.
"""

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Optional

import pandas as pd

from qf_round.state.models import PayoutPlan, Phase, Proposal, RoundConfig, Vote

logger = logging.getLogger(__name__)

PAYOUT_COLUMNS = [
    "proposal_id",
    "title",
    "fund_address",
    "distinct_voters",
    "collected_funds",
    "quadratic_sum",
    "match",
    "payout",
    "payout_share_pct",
]


@dataclass
class RoundReport:
    """
    Round-level summary.

    Fields:
        round_label:      Human label for the round.
        denom:            Budget denomination.
        budget:           Total budget; equals the sum of all payouts.
        phase:            Phase at report time.
        committed:        True if the plan is the committed distribution,
                          False if it is a preview.
        proposal_count:   Number of proposals.
        vote_count:       Number of recorded votes.
        distinct_voters:  Number of distinct voter addresses across the round.
        total_collected:  Σ collected_funds (direct votes).
        matching_pool:    budget − total_collected.
        total_matched:    Σ match shares.
        leftover:         Amount routed to leftover_addr.
        leftover_addr:    Leftover recipient.
        top_proposal:     Title of the proposal with the largest payout, if any.
    """

    round_label: str
    denom: str
    budget: int
    phase: str
    committed: bool
    proposal_count: int
    vote_count: int
    distinct_voters: int
    total_collected: int
    matching_pool: int
    total_matched: int
    leftover: int
    leftover_addr: str
    top_proposal: Optional[str]


def build_vote_frame(votes: Iterable[Vote]) -> pd.DataFrame:
    """One row per recorded vote: proposal_id, voter, amount."""
    rows = [
        {"proposal_id": v.proposal_id, "voter": v.voter, "amount": v.fund.amount}
        for v in votes
    ]
    frame = pd.DataFrame(rows, columns=["proposal_id", "voter", "amount"])
    frame["amount"] = frame["amount"].astype(object)
    return frame


def build_payout_frame(
    proposals: list[Proposal],
    plan: PayoutPlan,
    votes: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Per-proposal payout table, ordered by proposal id.

    Args:
        proposals:  Stored proposals.
        plan:       Committed or previewed PayoutPlan.
        votes:      Optional frame from build_vote_frame(); adds distinct voters.

    Returns:
        DataFrame with PAYOUT_COLUMNS.
    """
    titles = {p.id: p.title for p in proposals}
    voters: dict[int, int] = {}
    if votes is not None and not votes.empty:
        voters = votes.groupby("proposal_id")["voter"].nunique().to_dict()

    total = plan.total
    rows = []
    for line in plan.proposals:
        rows.append({
            "proposal_id": line.proposal_id,
            "title": titles.get(line.proposal_id, ""),
            "fund_address": line.fund_address,
            "distinct_voters": int(voters.get(line.proposal_id, 0)),
            "collected_funds": line.collected_funds,
            "quadratic_sum": line.quadratic_sum,
            "match": line.match,
            "payout": line.amount,
            "payout_share_pct": round(line.amount / total * 100, 2) if total else 0.0,
        })

    frame = pd.DataFrame(rows, columns=PAYOUT_COLUMNS)
    for col in ("collected_funds", "quadratic_sum", "match", "payout"):
        frame[col] = frame[col].astype(object)
    return frame


def summarize_round(
    round_label: str,
    round_config: RoundConfig,
    phase: Phase,
    plan: PayoutPlan,
    frame: pd.DataFrame,
    votes: pd.DataFrame,
    committed: bool,
) -> RoundReport:
    total_collected = sum(int(v) for v in frame["collected_funds"])
    top_proposal = None
    if not frame.empty:
        best = max(range(len(frame)), key=lambda i: (int(frame["payout"].iloc[i]), -i))
        if int(frame["payout"].iloc[best]) > 0:
            top_proposal = frame["title"].iloc[best]

    report = RoundReport(
        round_label=round_label,
        denom=round_config.budget.denom,
        budget=round_config.budget.amount,
        phase=phase.value,
        committed=committed,
        proposal_count=len(frame),
        vote_count=len(votes),
        distinct_voters=int(votes["voter"].nunique()) if not votes.empty else 0,
        total_collected=total_collected,
        matching_pool=round_config.budget.amount - total_collected,
        total_matched=sum(int(v) for v in frame["match"]),
        leftover=plan.leftover,
        leftover_addr=plan.leftover_addr,
        top_proposal=top_proposal,
    )
    logger.info(
        "Round report %r: %d proposals, %d votes, %d%s matched, %d leftover.",
        round_label, report.proposal_count, report.vote_count,
        report.total_matched, report.denom, report.leftover,
    )
    return report


def export_report_markdown(
    report: RoundReport,
    frame: pd.DataFrame,
    output_path: str,
    figure_path: Optional[str] = None,
) -> str:
    """
    Write the Markdown round report to ``output_path`` and return it.

    Structure:
        # Quadratic Funding Round Report
        ## Summary          (key figures table)
        ## Payouts          (per-proposal table)
        ## Leftover         (recipient and amount)
    """
    d = report.denom
    status = "committed" if report.committed else "preview (not committed)"
    lines: list[str] = [
        f"# Quadratic Funding Round Report: {report.round_label}",
        "",
        f"**Phase:** {report.phase} | **Distribution:** {status}",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|---|---|",
        f"| Budget | {report.budget} {d} |",
        f"| Proposals | {report.proposal_count} |",
        f"| Votes | {report.vote_count} |",
        f"| Distinct voters | {report.distinct_voters} |",
        f"| Direct contributions | {report.total_collected} {d} |",
        f"| Matching pool | {report.matching_pool} {d} |",
        f"| Matched | {report.total_matched} {d} |",
        f"| Leftover | {report.leftover} {d} |",
        "",
        "## Payouts",
        "",
    ]

    if frame.empty:
        lines.append("_No proposals were created in this round._")
    else:
        lines += [
            "| # | Title | Recipient | Voters | Direct | Match | Payout | Share |",
            "|---|---|---|---|---|---|---|---|",
        ]
        for row in frame.itertuples(index=False):
            lines.append(
                f"| {row.proposal_id} | {row.title} | `{row.fund_address}` | "
                f"{row.distinct_voters} | {row.collected_funds} | {row.match} | "
                f"{row.payout} | {row.payout_share_pct:.2f}% |"
            )

    lines += [
        "",
        "## Leftover",
        "",
        f"{report.leftover} {d} to `{report.leftover_addr}`.",
    ]
    if report.top_proposal is not None:
        lines += ["", f"Largest payout: **{report.top_proposal}**."]
    if figure_path:
        lines += ["", f"![Payouts]({figure_path})"]
    lines.append("")

    markdown = "\n".join(lines)
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as fh:
        fh.write(markdown)
    logger.info("Round report written to %s", output_path)
    return markdown
