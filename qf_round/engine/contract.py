"""
qf_round/engine/contract.py: Entry points invoked by the host.

    instantiate(store, env, info, msg)          create the round
    execute(store, env, info, msg, payments)    one of the ExecuteMsg variants
    query(store, env, msg)                      one of the QueryMsg variants

Each mutating entry point runs against a StagedStore over the host's store.
The staged writes are committed only when the whole action succeeds; any
error discards them and propagates unchanged to the host. The round Config is
loaded once per invocation and passed explicitly to every operation.
"""

import logging
from dataclasses import dataclass
from typing import Union

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.engine import distribution, registry
from qf_round.engine.context import (
    AddressValidator,
    BankSend,
    Env,
    MessageInfo,
    PaymentExecutor,
    Response,
    validate_address,
)
from qf_round.engine.matching import parse_precision
from qf_round.engine.messages import (
    AdvancePhase,
    AllProposals,
    CreateProposal,
    Distribution,
    ExecuteMsg,
    InstantiateMsg,
    PreviewDistribution,
    ProposalById,
    QueryMsg,
    RoundStatus,
    TriggerDistribution,
    VoteProposal,
)
from qf_round.errors import InvalidInput, NotFound, RoundError
from qf_round.state.models import Coin, PayoutPlan, Phase, Proposal, RoundConfig
from qf_round.storage.kv import KeyValueStore
from qf_round.storage.ledger import LedgerStore
from qf_round.storage.staged import staged

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundStatusResponse:
    config: RoundConfig
    phase: Phase
    proposal_count: int
    vote_count: int


QueryResponse = Union[Proposal, list, RoundStatusResponse, PayoutPlan]


def _extract_budget(funds: tuple[Coin, ...], denom: str) -> Coin:
    if len(funds) != 1:
        raise InvalidInput(f"wrong coin sent: expected exactly one {denom} coin, got {len(funds)}")
    if funds[0].denom != denom:
        raise InvalidInput(f"wrong fund coin (expected: {denom}, got: {funds[0].denom})")
    if funds[0].amount <= 0:
        raise InvalidInput("round budget must be positive")
    return funds[0]


def instantiate(
    store: KeyValueStore,
    env: Env,
    info: MessageInfo,
    msg: InstantiateMsg,
    validate: AddressValidator = validate_address,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Response:
    """
    Validate ``msg`` and persist the round Config.

    Raises:
        InvalidInput: Round already exists, a period is already expired, the
                      attached funds are not one positive coin of budget_denom,
                      an address is invalid, or the algorithm is unknown.
    """
    try:
        with staged(store) as buffer:
            ledger = LedgerStore(buffer, config)
            if ledger.is_instantiated():
                raise InvalidInput("round is already instantiated")

            if msg.proposal_period.is_expired(env.height, env.time):
                raise InvalidInput(f"proposal period already expired ({msg.proposal_period})")
            if msg.voting_period.is_expired(env.height, env.time):
                raise InvalidInput(f"voting period already expired ({msg.voting_period})")

            budget = _extract_budget(info.funds, msg.budget_denom)
            if budget.amount > config.max_amount:
                raise InvalidInput("round budget exceeds the amount range")

            for role, address in (("admin", msg.admin), ("leftover_addr", msg.leftover_addr)):
                if not validate(address):
                    raise InvalidInput(f"invalid {role} address {address!r}")
            for name, whitelist in (
                ("create_proposal_whitelist", msg.create_proposal_whitelist),
                ("vote_proposal_whitelist", msg.vote_proposal_whitelist),
            ):
                for address in whitelist or ():
                    if not validate(address):
                        raise InvalidInput(f"invalid address {address!r} in {name}")

            parse_precision(msg.algorithm, config)

            round_config = RoundConfig(
                admin=msg.admin,
                leftover_addr=msg.leftover_addr,
                create_proposal_whitelist=msg.create_proposal_whitelist,
                vote_proposal_whitelist=msg.vote_proposal_whitelist,
                voting_period=msg.voting_period,
                proposal_period=msg.proposal_period,
                budget=budget,
                algorithm=msg.algorithm,
            )
            ledger.save_config(round_config)
            ledger.save_phase(Phase.PROPOSAL_PERIOD)
            ledger.init_sequences()
    except RoundError as exc:
        logger.warning("instantiate rejected (%s): %s", exc.kind, exc.message)
        raise

    logger.info(
        "Round instantiated by %s: budget %s, proposal period %s, voting period %s.",
        info.sender, budget, msg.proposal_period, msg.voting_period,
    )
    return (
        Response()
        .add_attribute("action", "instantiate")
        .add_attribute("admin", msg.admin)
        .add_attribute("budget", budget)
    )


def execute(
    store: KeyValueStore,
    env: Env,
    info: MessageInfo,
    msg: ExecuteMsg,
    payments: PaymentExecutor,
    validate: AddressValidator = validate_address,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Response:
    """Dispatch one execute message as a single all-or-nothing invocation."""
    try:
        with staged(store) as buffer:
            ledger = LedgerStore(buffer, config)
            round_config = ledger.load_config()

            if isinstance(msg, CreateProposal):
                response = _execute_create_proposal(ledger, round_config, env, info, msg, validate)
            elif isinstance(msg, VoteProposal):
                response = _execute_vote_proposal(ledger, round_config, env, info, msg, config)
            elif isinstance(msg, TriggerDistribution):
                response = _execute_trigger_distribution(
                    ledger, round_config, env, info, payments, config
                )
            elif isinstance(msg, AdvancePhase):
                response = _execute_advance_phase(ledger, round_config, env, info)
            else:
                raise InvalidInput(f"unknown execute message {type(msg).__name__}")
    except RoundError as exc:
        logger.warning(
            "%s from %s rejected (%s): %s", type(msg).__name__, info.sender, exc.kind, exc.message
        )
        raise
    return response


def _execute_create_proposal(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    info: MessageInfo,
    msg: CreateProposal,
    validate: AddressValidator,
) -> Response:
    proposal = registry.create_proposal(
        ledger,
        round_config,
        env,
        info.sender,
        title=msg.title,
        description=msg.description,
        fund_address=msg.fund_address,
        metadata=msg.metadata,
        validate=validate,
    )
    response = (
        Response(data=proposal.id)
        .add_attribute("action", "create_proposal")
        .add_attribute("title", proposal.title)
        .add_attribute("proposal_id", proposal.id)
    )
    return response


def _execute_vote_proposal(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    info: MessageInfo,
    msg: VoteProposal,
    config: EngineConfig,
) -> Response:
    vote, proposal = registry.vote_proposal(
        ledger, round_config, env, info.sender, msg.proposal_id, info.funds, config
    )
    return (
        Response()
        .add_attribute("action", "vote_proposal")
        .add_attribute("proposal_id", proposal.id)
        .add_attribute("voter", vote.voter)
        .add_attribute("collected_funds", proposal.collected_funds)
    )


def _execute_trigger_distribution(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    info: MessageInfo,
    payments: PaymentExecutor,
    config: EngineConfig,
) -> Response:
    plan = distribution.trigger_distribution(
        ledger, round_config, env, info.sender, payments, config
    )
    response = Response(data=plan).add_attribute("action", "trigger_distribution")
    for address, amount in plan.as_mapping().items():
        response.messages.append(BankSend(to_address=address, amount=Coin(plan.denom, amount)))
    response.add_attribute("leftover", plan.leftover)
    return response


def _execute_advance_phase(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    info: MessageInfo,
) -> Response:
    phase = registry.advance_phase(ledger, round_config, env, info.sender)
    return Response(data=phase).add_attribute("action", "advance_phase").add_attribute(
        "phase", phase.value
    )


def query(
    store: KeyValueStore,
    env: Env,
    msg: QueryMsg,
    config: EngineConfig = DEFAULT_CONFIG,
) -> QueryResponse:
    """
    Answer a read-only query. Never writes to ``store``.

    Raises:
        NotFound: Unknown proposal id, or Distribution before distribution.
    """
    ledger = LedgerStore(store, config)

    if isinstance(msg, ProposalById):
        proposal = ledger.load_proposal(msg.id)
        if proposal is None:
            raise NotFound(f"proposal {msg.id} not found")
        return proposal
    if isinstance(msg, AllProposals):
        return list(ledger.proposals())
    if isinstance(msg, RoundStatus):
        round_config = ledger.load_config()
        return RoundStatusResponse(
            config=round_config,
            phase=registry.effective_phase(ledger.load_phase(), round_config, env),
            proposal_count=sum(1 for _ in ledger.proposals()),
            vote_count=sum(1 for _ in ledger.votes()),
        )
    if isinstance(msg, Distribution):
        plan = ledger.load_plan()
        if plan is None:
            raise NotFound("round has not been distributed yet")
        return plan
    if isinstance(msg, PreviewDistribution):
        round_config = ledger.load_config()
        committed = ledger.load_plan()
        if committed is not None:
            return committed
        return distribution.plan_distribution(ledger, round_config, config)
    raise InvalidInput(f"unknown query message {type(msg).__name__}")
