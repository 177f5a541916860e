"""
qf_round/tests/conftest.py: Shared pytest fixtures for the round engine tests.

Fixtures:
    host        LocalHost at height 100 with funded admin and voter accounts.
    open_round  Factory: instantiate a round on ``host`` and return the host.
    propose     Helper: create a proposal and return its id.
    cast_vote   Helper: vote on a proposal with ``amount`` of the round denom.
"""

import pytest

from qf_round.engine.messages import CreateProposal, InstantiateMsg, VoteProposal
from qf_round.host import LocalHost, coins
from qf_round.state.models import Coin

ADMIN = "admin"
LEFTOVER = "treasury"
DENOM = "ucosm"
START_HEIGHT = 100
START_TIME = 1_700_000_000

ACCOUNTS = ["admin", "alice", "bob", "carol", "dave", "erin"]
STARTING_BALANCE = 1_000_000


@pytest.fixture
def host() -> LocalHost:
    h = LocalHost(height=START_HEIGHT, time=START_TIME, block_seconds=5)
    for account in ACCOUNTS:
        h.bank.mint(account, Coin(DENOM, STARTING_BALANCE))
    return h


@pytest.fixture
def open_round(host):
    """Instantiate a round. Keyword overrides go to InstantiateMsg."""

    def _open(budget: int = 1000, **overrides) -> LocalHost:
        fields = {"admin": ADMIN, "leftover_addr": LEFTOVER, "budget_denom": DENOM}
        fields.update(overrides)
        host.instantiate(ADMIN, InstantiateMsg(**fields), coins(budget, DENOM))
        return host

    return _open


@pytest.fixture
def propose():
    def _propose(h: LocalHost, sender: str, title: str, fund_address: str | None = None) -> int:
        msg = CreateProposal(
            title=title,
            description=f"{title} description",
            fund_address=fund_address or f"{title.lower().replace(' ', '_')}_fund",
        )
        return h.execute(sender, msg).data

    return _propose


@pytest.fixture
def cast_vote():
    def _vote(h: LocalHost, voter: str, proposal_id: int, amount: int, denom: str = DENOM):
        return h.execute(voter, VoteProposal(proposal_id=proposal_id), coins(amount, denom))

    return _vote
