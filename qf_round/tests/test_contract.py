"""
Tests for qf_round/engine/contract.py and qf_round/engine/messages.py

Instantiate validation, message parsing and the query surface.
"""

import pytest

from qf_round.engine import contract
from qf_round.engine.context import Env, MessageInfo
from qf_round.engine.messages import (
    AdvancePhase,
    AllProposals,
    CreateProposal,
    InstantiateMsg,
    ProposalById,
    RoundStatus,
    TriggerDistribution,
    VoteProposal,
    parse_execute_msg,
    parse_instantiate_msg,
    parse_query_msg,
)
from qf_round.errors import InvalidInput, NotFound
from qf_round.host import coins
from qf_round.state.codec import parse_amount
from qf_round.state.expiration import AtHeight, AtTime, Never
from qf_round.state.models import Coin, FundingAlgorithm, Phase
from qf_round.storage import MemoryStore

ENV = Env(height=100, time=1_700_000_000)


def _msg(**overrides) -> InstantiateMsg:
    fields = {"admin": "admin", "leftover_addr": "treasury", "budget_denom": "ucosm"}
    fields.update(overrides)
    return InstantiateMsg(**fields)


# ---------------------------------------------------------------------------
# Instantiate
# ---------------------------------------------------------------------------

def test_instantiate_persists_config_and_phase():
    store = MemoryStore()
    response = contract.instantiate(store, ENV, MessageInfo("admin", coins(500, "ucosm")), _msg())
    assert response.attribute("budget") == "500ucosm"

    status = contract.query(store, ENV, RoundStatus())
    assert status.phase is Phase.PROPOSAL_PERIOD
    assert status.config.budget == Coin("ucosm", 500)
    assert status.config.create_proposal_whitelist is None
    assert status.proposal_count == 0


@pytest.mark.parametrize(
    "funds",
    [(), coins(500, "uatom"), coins(0, "ucosm"), (Coin("ucosm", 1), Coin("ucosm", 1))],
)
def test_instantiate_requires_one_budget_coin(funds):
    store = MemoryStore()
    with pytest.raises(InvalidInput):
        contract.instantiate(store, ENV, MessageInfo("admin", funds), _msg())
    assert len(store) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"proposal_period": AtHeight(100)},
        {"voting_period": AtTime(1_700_000_000)},
        {"admin": ""},
        {"leftover_addr": "two words"},
        {"vote_proposal_whitelist": ("ok", "")},
        {"algorithm": FundingAlgorithm(parameter="x")},
        {"algorithm": FundingAlgorithm(parameter="²")},
        {"algorithm": FundingAlgorithm(kind="linear")},
    ],
)
def test_instantiate_rejects_bad_parameters(overrides):
    store = MemoryStore()
    with pytest.raises(InvalidInput):
        contract.instantiate(store, ENV, MessageInfo("admin", coins(500, "ucosm")), _msg(**overrides))
    assert len(store) == 0


def test_instantiate_twice_is_rejected():
    store = MemoryStore()
    info = MessageInfo("admin", coins(500, "ucosm"))
    contract.instantiate(store, ENV, info, _msg())
    before = store.snapshot()
    with pytest.raises(InvalidInput):
        contract.instantiate(store, ENV, info, _msg(admin="mallory"))
    assert store.snapshot() == before


def test_execute_before_instantiate_is_not_found():
    with pytest.raises(NotFound):
        contract.execute(MemoryStore(), ENV, MessageInfo("alice"), AdvancePhase(), payments=None)


def test_host_supplied_address_validator_is_used():
    store = MemoryStore()
    contract.instantiate(store, ENV, MessageInfo("admin", coins(500, "ucosm")), _msg())

    def only_cosmos(address):
        return address.startswith("cosmos1")

    with pytest.raises(InvalidInput):
        contract.execute(
            store, ENV, MessageInfo("alice"), CreateProposal("A", "", "alpha"), None, only_cosmos
        )
    response = contract.execute(
        store, ENV, MessageInfo("alice"), CreateProposal("A", "", "cosmos1alpha"), None, only_cosmos
    )
    assert response.data == 1


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def test_query_proposals(open_round, propose):
    h = open_round()
    propose(h, "alice", "Alpha")
    propose(h, "bob", "Beta")
    assert [p.title for p in h.query(AllProposals())] == ["Alpha", "Beta"]
    with pytest.raises(NotFound):
        h.query(ProposalById(id=3))


# ---------------------------------------------------------------------------
# Message parsing
# ---------------------------------------------------------------------------

def test_parse_instantiate_defaults():
    msg = parse_instantiate_msg(
        {"admin": "admin", "leftover_addr": "treasury", "budget_denom": "ucosm"}
    )
    assert msg.voting_period == Never()
    assert msg.proposal_period == Never()
    assert msg.vote_proposal_whitelist is None
    assert msg.algorithm == FundingAlgorithm()


def test_parse_instantiate_full():
    msg = parse_instantiate_msg({
        "admin": "admin",
        "leftover_addr": "treasury",
        "budget_denom": "ucosm",
        "proposal_period": {"at_height": 200},
        "voting_period": {"at_time": 1_800_000_000},
        "create_proposal_whitelist": ["alice"],
        "vote_proposal_whitelist": [],
        "algorithm": {"capital_constrained_liberal_radicalism": {"parameter": "2"}},
    })
    assert msg.proposal_period == AtHeight(200)
    assert msg.voting_period == AtTime(1_800_000_000)
    assert msg.create_proposal_whitelist == ("alice",)
    assert msg.vote_proposal_whitelist == ()
    assert msg.algorithm.parameter == "2"


def test_parse_execute_variants():
    assert parse_execute_msg({"vote_proposal": {"proposal_id": 4}}) == VoteProposal(4)
    assert parse_execute_msg({"trigger_distribution": {}}) == TriggerDistribution()
    assert parse_execute_msg({"advance_phase": None}) == AdvancePhase()
    create = parse_execute_msg({
        "create_proposal": {"title": "T", "fund_address": "f", "metadata": "AAE="}
    })
    assert create == CreateProposal("T", "", "f", metadata=b"\x00\x01")


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"burn": {}},
        {"vote_proposal": {"proposal_id": "1"}},
        {"vote_proposal": {"proposal_id": -1}},
        {"create_proposal": {"title": 5, "fund_address": "f"}},
        {"create_proposal": {"title": "T", "fund_address": "f", "metadata": "%%%"}},
        {"vote_proposal": {"proposal_id": 1}, "advance_phase": {}},
    ],
)
def test_parse_execute_rejects_malformed(raw):
    with pytest.raises(InvalidInput):
        parse_execute_msg(raw)


def test_parse_query_variants():
    assert parse_query_msg({"proposal_by_id": {"id": 2}}) == ProposalById(2)
    assert parse_query_msg({"round_status": {}}) == RoundStatus()
    with pytest.raises(InvalidInput):
        parse_query_msg({"everything": {}})


@pytest.mark.parametrize("value", ["²", "١٢", "-5", "1.5", "", True, None])
def test_parse_amount_rejects_non_decimal_input(value):
    with pytest.raises(InvalidInput):
        parse_amount(value)


def test_parse_amount_accepts_strings_and_ints():
    assert parse_amount("0042") == 42
    assert parse_amount(2**128 - 1) == 2**128 - 1
