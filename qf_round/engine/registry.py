"""
qf_round/engine/registry.py: Proposal and vote bookkeeping.

Phase machine per round:

    PROPOSAL_PERIOD ──(proposal_period expires, or admin advance_phase when
                       proposal_period is Never)──▶ VOTING_PERIOD
    VOTING_PERIOD   ──(admin trigger_distribution)──▶ DISTRIBUTED

The ProposalPeriod → VotingPeriod transition is evaluated lazily on every
action and query. Mutating actions persist the lazily reached phase together
with their own writes; queries never write.
"""

import logging
from typing import Optional, Sequence

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.engine.access import can_create_proposal, can_vote, is_admin
from qf_round.engine.context import AddressValidator, Env, validate_address
from qf_round.engine.matching import checked
from qf_round.errors import ArithmeticOverflow, InvalidInput, NotFound, Unauthorized, WrongPhase
from qf_round.state.expiration import Never
from qf_round.state.models import Coin, Phase, Proposal, RoundConfig, Vote
from qf_round.storage.ledger import LedgerStore

logger = logging.getLogger(__name__)


def effective_phase(stored: Phase, round_config: RoundConfig, env: Env) -> Phase:
    """Stored phase with the clock-driven proposal → voting transition applied."""
    if stored is Phase.PROPOSAL_PERIOD and round_config.proposal_period.is_expired(
        env.height, env.time
    ):
        return Phase.VOTING_PERIOD
    return stored


def sync_phase(ledger: LedgerStore, round_config: RoundConfig, env: Env) -> Phase:
    """Compute the effective phase and stage it if the clock moved it on."""
    stored = ledger.load_phase()
    phase = effective_phase(stored, round_config, env)
    if phase is not stored:
        logger.info("Proposal period expired at height %d; round enters voting period.", env.height)
        ledger.save_phase(phase)
    return phase


def voting_open(round_config: RoundConfig, env: Env) -> bool:
    return not round_config.voting_period.is_expired(env.height, env.time)


def create_proposal(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    caller: str,
    title: str,
    description: str,
    fund_address: str,
    metadata: Optional[bytes] = None,
    validate: AddressValidator = validate_address,
) -> Proposal:
    """
    Record a new proposal and return it.

    Raises:
        WrongPhase:    Round is not in the proposal period.
        Unauthorized:  Caller is not on the create-proposal whitelist.
        InvalidInput:  Empty title or invalid fund address.
    """
    phase = sync_phase(ledger, round_config, env)
    if phase is not Phase.PROPOSAL_PERIOD:
        raise WrongPhase(f"proposals can only be created during the proposal period (phase: {phase.value})")

    if not can_create_proposal(round_config.create_proposal_whitelist, caller):
        raise Unauthorized(f"{caller} is not allowed to create proposals")

    if not title or not title.strip():
        raise InvalidInput("proposal title must not be empty")
    if not validate(fund_address):
        raise InvalidInput(f"invalid fund address {fund_address!r}")

    proposal = Proposal(
        id=ledger.next_proposal_id(),
        title=title,
        description=description,
        metadata=metadata,
        fund_address=fund_address,
        collected_funds=0,
    )
    ledger.save_proposal(proposal)
    logger.info("Proposal %d created by %s: %r.", proposal.id, caller, title)
    return proposal


def extract_fund(funds: Sequence[Coin], denom: str) -> Coin:
    """
    The single positive coin of ``denom`` attached to a call.

    Raises:
        InvalidInput: No coin, several coins, wrong denomination or zero amount.
    """
    if len(funds) != 1:
        raise InvalidInput(f"wrong coin sent: expected exactly one {denom} coin, got {len(funds)}")
    fund = funds[0]
    if fund.denom != denom:
        raise InvalidInput(f"wrong fund coin (expected: {denom}, got: {fund.denom})")
    if fund.amount <= 0:
        raise InvalidInput(f"fund amount must be positive, got {fund.amount}")
    return fund


def vote_proposal(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    caller: str,
    proposal_id: int,
    funds: Sequence[Coin],
    config: EngineConfig = DEFAULT_CONFIG,
) -> tuple[Vote, Proposal]:
    """
    Record a vote and add its amount to the proposal's collected funds.

    A voter may vote on the same proposal several times; each vote is kept and
    the distribution sums them per voter.

    Returns:
        (vote, updated proposal)

    Raises:
        WrongPhase:          Not in the voting period, or voting has closed.
        Unauthorized:        Caller is not on the vote whitelist.
        NotFound:            No proposal with ``proposal_id``.
        InvalidInput:        Funds are not one positive coin of the budget denom.
        ArithmeticOverflow:  collected_funds would leave the amount range, or
                             the round's total collected funds would exceed
                             the budget.
    """
    phase = sync_phase(ledger, round_config, env)
    if phase is not Phase.VOTING_PERIOD:
        raise WrongPhase(f"votes are only accepted during the voting period (phase: {phase.value})")
    if not voting_open(round_config, env):
        raise WrongPhase(f"voting period expired at {round_config.voting_period}")

    if not can_vote(round_config.vote_proposal_whitelist, caller):
        raise Unauthorized(f"{caller} is not allowed to vote")

    proposal = ledger.load_proposal(proposal_id)
    if proposal is None:
        raise NotFound(f"proposal {proposal_id} not found")

    fund = extract_fund(funds, round_config.budget.denom)
    collected = checked(proposal.collected_funds + fund.amount, config, "collected_funds")
    round_collected = sum(p.collected_funds for p in ledger.proposals()) + fund.amount
    if round_collected > round_config.budget.amount:
        raise ArithmeticOverflow(
            f"vote would raise collected funds to {round_collected}, "
            f"above the round budget {round_config.budget.amount}"
        )

    vote = Vote(proposal_id=proposal_id, voter=caller, fund=fund)
    ledger.save_vote(ledger.next_vote_seq(), vote)

    updated = Proposal(
        id=proposal.id,
        title=proposal.title,
        description=proposal.description,
        metadata=proposal.metadata,
        fund_address=proposal.fund_address,
        collected_funds=collected,
    )
    ledger.save_proposal(updated)
    logger.info(
        "Vote of %s by %s on proposal %d; collected funds now %d.",
        fund, caller, proposal_id, collected,
    )
    return vote, updated


def advance_phase(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    caller: str,
) -> Phase:
    """
    Admin-only close of a proposal period whose boundary is Never.

    Raises:
        Unauthorized:  Caller is not the admin.
        WrongPhase:    Not in the proposal period, or the proposal period has a
                       clock boundary (it then closes by itself).
    """
    if not is_admin(round_config.admin, caller):
        raise Unauthorized("only the admin can advance the phase")

    phase = sync_phase(ledger, round_config, env)
    if phase is not Phase.PROPOSAL_PERIOD:
        raise WrongPhase(f"nothing to advance from phase {phase.value}")
    if not isinstance(round_config.proposal_period, Never):
        raise WrongPhase(
            f"proposal period ends at {round_config.proposal_period}; it cannot be closed manually"
        )

    ledger.save_phase(Phase.VOTING_PERIOD)
    logger.info("Admin %s closed the proposal period; round enters voting period.", caller)
    return Phase.VOTING_PERIOD
