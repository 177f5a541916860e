"""
Tests for qf_round/reports/round_report.py

Frame construction, round summary and Markdown export. Uses tmp_path for output.
"""

import pytest

from qf_round.reports.round_report import (
    PAYOUT_COLUMNS,
    build_payout_frame,
    build_vote_frame,
    export_report_markdown,
    summarize_round,
)
from qf_round.state.expiration import Never
from qf_round.state.models import (
    Coin,
    PayoutPlan,
    Phase,
    Proposal,
    ProposalPayout,
    RoundConfig,
    Vote,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _config(budget=1000):
    return RoundConfig(
        admin="admin",
        leftover_addr="pool",
        create_proposal_whitelist=None,
        vote_proposal_whitelist=None,
        voting_period=Never(),
        proposal_period=Never(),
        budget=Coin("ucosm", budget),
    )


def _proposals():
    return [
        Proposal(1, "Explorer", "", None, "explorer_team", 200),
        Proposal(2, "Wallet SDK", "", None, "sdk_team", 400),
    ]


def _votes():
    return [
        Vote(1, "alice", Coin("ucosm", 100)),
        Vote(1, "bob", Coin("ucosm", 100)),
        Vote(2, "alice", Coin("ucosm", 400)),
    ]


def _plan():
    return PayoutPlan(
        denom="ucosm",
        proposals=(
            ProposalPayout(1, "explorer_team", 200, 400, 200, 400),
            ProposalPayout(2, "sdk_team", 400, 400, 200, 600),
        ),
        leftover_addr="pool",
        leftover=0,
    )


def _report(committed=True):
    votes = build_vote_frame(_votes())
    frame = build_payout_frame(_proposals(), _plan(), votes)
    report = summarize_round("Q3", _config(), Phase.DISTRIBUTED, _plan(), frame, votes, committed)
    return report, frame


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

def test_payout_frame_columns_and_values():
    frame = build_payout_frame(_proposals(), _plan(), build_vote_frame(_votes()))
    assert list(frame.columns) == PAYOUT_COLUMNS
    assert list(frame["payout"]) == [400, 600]
    assert list(frame["distinct_voters"]) == [2, 1]
    assert list(frame["payout_share_pct"]) == [40.0, 60.0]


def test_frames_keep_amounts_beyond_int64():
    huge = 2**100
    votes = build_vote_frame([Vote(1, "alice", Coin("ucosm", huge))])
    assert votes["amount"].iloc[0] == huge
    plan = PayoutPlan("ucosm", (ProposalPayout(1, "f", huge, 1, 0, huge),), "pool", 0)
    frame = build_payout_frame([Proposal(1, "T", "", None, "f", huge)], plan)
    assert frame["payout"].iloc[0] == huge


def test_empty_vote_frame_has_columns():
    frame = build_vote_frame([])
    assert frame.empty
    assert list(frame.columns) == ["proposal_id", "voter", "amount"]


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_summarize_round():
    report, _ = _report()
    assert report.proposal_count == 2
    assert report.vote_count == 3
    assert report.distinct_voters == 2
    assert report.total_collected == 600
    assert report.matching_pool == 400
    assert report.total_matched == 400
    assert report.top_proposal == "Wallet SDK"
    assert report.phase == "distributed"


def test_summarize_round_without_payouts_has_no_top_proposal():
    plan = PayoutPlan(
        "ucosm",
        (ProposalPayout(1, "f", 0, 0, 0, 0),),
        "pool",
        1000,
    )
    proposals = [Proposal(1, "Quiet", "", None, "f")]
    votes = build_vote_frame([])
    frame = build_payout_frame(proposals, plan, votes)
    report = summarize_round("Q3", _config(), Phase.VOTING_PERIOD, plan, frame, votes, False)
    assert report.top_proposal is None
    assert report.leftover == 1000
    assert report.distinct_voters == 0


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

def test_export_markdown_sections(tmp_path):
    report, frame = _report()
    path = tmp_path / "out" / "report.md"
    md = export_report_markdown(report, frame, str(path), figure_path="figs/payouts.png")

    assert path.read_text(encoding="utf-8") == md
    assert md.startswith("# Quadratic Funding Round Report: Q3")
    for heading in ("## Summary", "## Payouts", "## Leftover"):
        assert heading in md
    assert "| 2 | Wallet SDK | `sdk_team` | 1 | 400 | 200 | 600 | 60.00% |" in md
    assert "![Payouts](figs/payouts.png)" in md
    assert "**Distribution:** committed" in md


def test_export_markdown_preview_and_empty_round(tmp_path):
    plan = PayoutPlan("ucosm", (), "pool", 1000)
    votes = build_vote_frame([])
    frame = build_payout_frame([], plan, votes)
    report = summarize_round("Empty", _config(), Phase.PROPOSAL_PERIOD, plan, frame, votes, False)
    md = export_report_markdown(report, frame, str(tmp_path / "empty.md"))

    assert "_No proposals were created in this round._" in md
    assert "preview (not committed)" in md
    assert "1000 ucosm to `pool`." in md
