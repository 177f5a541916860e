"""
Tests for qf_round/engine/distribution.py

End-to-end rounds on a LocalHost with hand-computed payouts:

    budget 1000, A: 100 (alice) + 100 (bob), B: 400 (carol)
        roots A = 10 + 10, B = 20  ->  quadratic sums 400 / 400
        pool = 1000 - 600 = 400    ->  matches 200 / 200
        payouts A = 400, B = 600, leftover 0
"""

import pytest

from qf_round.config import EngineConfig
from qf_round.engine.distribution import plan_distribution
from qf_round.engine.messages import (
    AdvancePhase,
    CreateProposal,
    Distribution,
    InstantiateMsg,
    PreviewDistribution,
    RoundStatus,
    TriggerDistribution,
    VoteProposal,
)
from qf_round.errors import (
    AlreadyDistributed,
    ArithmeticOverflow,
    NotFound,
    Unauthorized,
    WrongPhase,
)
from qf_round.host import LocalHost, coins
from qf_round.state.expiration import AtHeight
from qf_round.state.models import Coin, FundingAlgorithm, Phase
from qf_round.storage import LedgerStore


def _payouts(plan) -> dict[int, int]:
    return {line.proposal_id: line.amount for line in plan.proposals}


@pytest.fixture
def reference_round(open_round, propose, cast_vote):
    h = open_round(budget=1000)
    a = propose(h, "alice", "Alpha", fund_address="alpha_fund")
    b = propose(h, "bob", "Beta", fund_address="beta_fund")
    h.execute("admin", AdvancePhase())
    cast_vote(h, "alice", a, 100)
    cast_vote(h, "bob", a, 100)
    cast_vote(h, "carol", b, 400)
    return h


def test_reference_round_payouts(reference_round):
    h = reference_round
    response = h.execute("admin", TriggerDistribution())
    plan = response.data

    assert _payouts(plan) == {1: 400, 2: 600}
    assert [line.match for line in plan.proposals] == [200, 200]
    assert plan.leftover == 0
    assert plan.total == 1000
    assert h.bank.balance("alpha_fund", "ucosm") == 400
    assert h.bank.balance("beta_fund", "ucosm") == 600
    assert h.query(RoundStatus()).phase is Phase.DISTRIBUTED


def test_distribution_response_lists_transfers(reference_round):
    response = reference_round.execute("admin", TriggerDistribution())
    sends = {m.to_address: m.amount for m in response.messages}
    assert sends == {
        "alpha_fund": Coin("ucosm", 400),
        "beta_fund": Coin("ucosm", 600),
        "treasury": Coin("ucosm", 0),
    }
    assert response.attribute("leftover") == "0"


def test_distribution_query_returns_committed_plan(reference_round):
    h = reference_round
    with pytest.raises(NotFound):
        h.query(Distribution())
    preview = h.query(PreviewDistribution())
    plan = h.execute("admin", TriggerDistribution()).data
    assert h.query(Distribution()) == plan == preview


def test_preview_is_deterministic_and_read_only(reference_round):
    h = reference_round
    before = h.store.snapshot()
    first = h.query(PreviewDistribution())
    second = h.query(PreviewDistribution())
    assert first == second
    assert h.store.snapshot() == before


def test_no_votes_sends_whole_budget_to_leftover(open_round, propose):
    h = open_round(budget=1000)
    propose(h, "alice", "Alpha")
    propose(h, "bob", "Beta")
    h.execute("admin", AdvancePhase())

    plan = h.execute("admin", TriggerDistribution()).data
    assert _payouts(plan) == {1: 0, 2: 0}
    assert plan.leftover == 1000
    assert h.bank.balance("treasury", "ucosm") == 1000


def test_no_proposals_sends_whole_budget_to_leftover(open_round):
    h = open_round(budget=250)
    h.execute("admin", AdvancePhase())
    plan = h.execute("admin", TriggerDistribution()).data
    assert plan.proposals == ()
    assert plan.leftover == 250


def test_repeat_votes_count_voter_once(open_round, propose, cast_vote):
    h = open_round(budget=1000)
    propose(h, "alice", "Alpha")
    propose(h, "bob", "Beta")
    h.execute("admin", AdvancePhase())
    # alice splits 100 across two votes; summed, she is one voter of 100
    cast_vote(h, "alice", 1, 50)
    cast_vote(h, "alice", 1, 50)
    cast_vote(h, "bob", 2, 100)

    plan = h.query(PreviewDistribution())
    assert [line.quadratic_sum for line in plan.proposals] == [100, 100]
    assert _payouts(plan) == {1: 500, 2: 500}


@pytest.mark.parametrize(
    "parameter, payouts, leftover",
    [
        ("", {1: 22, 2: 83}, 0),
        ("1", {1: 42, 2: 62}, 1),
    ],
)
def test_sqrt_precision_changes_rounding(open_round, propose, cast_vote, parameter, payouts, leftover):
    h = open_round(budget=105, algorithm=FundingAlgorithm(parameter=parameter))
    propose(h, "alice", "Alpha")
    propose(h, "bob", "Beta")
    h.execute("admin", AdvancePhase())
    cast_vote(h, "carol", 1, 2)
    cast_vote(h, "dave", 2, 3)

    plan = h.execute("admin", TriggerDistribution()).data
    assert _payouts(plan) == payouts
    assert plan.leftover == leftover
    assert plan.total == 105


def test_total_payout_equals_budget_for_uneven_round(open_round, propose, cast_vote):
    h = open_round(budget=10_007, algorithm=FundingAlgorithm(parameter="3"))
    for title in ("Alpha", "Beta", "Gamma"):
        propose(h, "alice", title)
    h.execute("admin", AdvancePhase())
    for voter, pid, amount in [
        ("alice", 1, 13), ("bob", 1, 29), ("carol", 2, 311),
        ("dave", 3, 7), ("erin", 3, 7), ("bob", 3, 2),
    ]:
        cast_vote(h, voter, pid, amount)

    plan = h.execute("admin", TriggerDistribution()).data
    assert plan.total == 10_007
    assert all(line.amount >= line.collected_funds for line in plan.proposals)
    assert h.bank.balance("treasury", "ucosm") == plan.leftover


def test_merged_fund_addresses_receive_one_transfer(open_round, propose, cast_vote):
    h = open_round(budget=1000)
    propose(h, "alice", "Alpha", fund_address="shared")
    propose(h, "bob", "Beta", fund_address="shared")
    h.execute("admin", AdvancePhase())
    cast_vote(h, "carol", 1, 100)
    cast_vote(h, "dave", 2, 100)

    response = h.execute("admin", TriggerDistribution())
    assert [m.to_address for m in response.messages] == ["shared", "treasury"]
    assert h.bank.balance("shared", "ucosm") == 1000


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def test_non_admin_cannot_distribute(reference_round):
    h = reference_round
    before = h.store.snapshot()
    with pytest.raises(Unauthorized):
        h.execute("alice", TriggerDistribution())
    assert h.store.snapshot() == before


def test_second_distribution_is_rejected_and_plan_unchanged(reference_round):
    h = reference_round
    plan = h.execute("admin", TriggerDistribution()).data
    balances = dict(h.bank.balances)
    with pytest.raises(AlreadyDistributed):
        h.execute("admin", TriggerDistribution())
    assert h.query(Distribution()) == plan
    assert h.bank.balances == balances


def test_unauthorized_checked_before_already_distributed(reference_round):
    h = reference_round
    h.execute("admin", TriggerDistribution())
    with pytest.raises(Unauthorized):
        h.execute("alice", TriggerDistribution())


def test_distribution_during_proposal_period_is_wrong_phase(open_round):
    h = open_round()
    with pytest.raises(WrongPhase):
        h.execute("admin", TriggerDistribution())


def test_distribution_waits_for_voting_period_end(open_round, propose, cast_vote):
    h = open_round(proposal_period=AtHeight(105), voting_period=AtHeight(120))
    pid = propose(h, "alice", "Alpha")
    h.advance_blocks(5)
    cast_vote(h, "bob", pid, 10)
    with pytest.raises(WrongPhase):
        h.execute("admin", TriggerDistribution())
    h.advance_blocks(15)
    plan = h.execute("admin", TriggerDistribution()).data
    assert plan.total == 1000


def test_no_actions_after_distribution(reference_round, propose, cast_vote):
    h = reference_round
    h.execute("admin", TriggerDistribution())
    with pytest.raises(WrongPhase):
        cast_vote(h, "alice", 1, 10)
    with pytest.raises(WrongPhase):
        propose(h, "alice", "Late")
    with pytest.raises(WrongPhase):
        h.execute("admin", AdvancePhase())


def test_vote_beyond_budget_is_rejected_and_round_still_distributes(open_round, propose, cast_vote):
    h = open_round(budget=100)
    pid = propose(h, "alice", "Alpha")
    h.execute("admin", AdvancePhase())
    cast_vote(h, "alice", pid, 60)
    before = h.store.snapshot()
    balances = dict(h.bank.balances)

    with pytest.raises(ArithmeticOverflow):
        cast_vote(h, "bob", pid, 50)
    assert h.store.snapshot() == before
    assert h.bank.balances == balances

    # exactly reaching the budget is still allowed
    cast_vote(h, "bob", pid, 40)
    plan = h.execute("admin", TriggerDistribution()).data
    assert plan.total == 100
    assert _payouts(plan) == {pid: 100}
    assert plan.leftover == 0
    assert h.query(RoundStatus()).phase is Phase.DISTRIBUTED


def test_budget_cap_counts_votes_across_proposals(open_round, propose, cast_vote):
    h = open_round(budget=100)
    a = propose(h, "alice", "Alpha")
    b = propose(h, "bob", "Beta")
    h.execute("admin", AdvancePhase())
    cast_vote(h, "carol", a, 70)
    with pytest.raises(ArithmeticOverflow):
        cast_vote(h, "dave", b, 31)
    cast_vote(h, "dave", b, 30)
    assert h.query(PreviewDistribution()).total == 100


def test_collected_funds_overflow_rejects_vote():
    config = EngineConfig(amount_bits=16)
    h = LocalHost(height=1, config=config)
    h.bank.mint("admin", Coin("ucosm", 60_000))
    h.bank.mint("bob", Coin("ucosm", 100_000))
    h.instantiate("admin", InstantiateMsg("admin", "treasury", "ucosm"), coins(60_000, "ucosm"))
    h.execute("admin", CreateProposal("Alpha", "", "alpha_fund"))
    h.execute("admin", AdvancePhase())
    h.execute("bob", VoteProposal(proposal_id=1), coins(60_000, "ucosm"))

    before = h.store.snapshot()
    with pytest.raises(ArithmeticOverflow):
        h.execute("bob", VoteProposal(proposal_id=1), coins(10_000, "ucosm"))
    assert h.store.snapshot() == before


def test_plan_distribution_is_pure(reference_round):
    ledger = LedgerStore(reference_round.store)
    config = ledger.load_config()
    assert plan_distribution(ledger, config) == plan_distribution(ledger, config)

