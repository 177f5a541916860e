"""
qf_round/engine/distribution.py: Round close and payout planning.

plan_distribution() is a pure function of the stored proposals, votes and
Config: computing it twice against the same state yields the same plan.
trigger_distribution() computes the plan, stages the plan and the DISTRIBUTED
phase, and hands the transfers to the host's payment executor. The contract
commits the staged writes only if all of that succeeds, so the phase change
and the payouts land together or not at all.
"""

import logging

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.engine.access import is_admin
from qf_round.engine.context import Env, PaymentExecutor
from qf_round.engine.matching import (
    allocate_matches,
    checked,
    group_contributions,
    parse_precision,
    quadratic_sum,
)
from qf_round.engine.registry import effective_phase
from qf_round.errors import AlreadyDistributed, ArithmeticOverflow, Unauthorized, WrongPhase
from qf_round.state.expiration import Never
from qf_round.state.models import PayoutPlan, Phase, ProposalPayout, RoundConfig
from qf_round.storage.ledger import LedgerStore

logger = logging.getLogger(__name__)


def plan_distribution(
    ledger: LedgerStore,
    round_config: RoundConfig,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PayoutPlan:
    """
    Compute the payout plan for the current stored state.

    Algorithm:
        1. Group votes per proposal and voter, summing repeat votes.
        2. Quadratic sum per proposal with the configured sqrt precision.
        3. Pool = budget − Σ collected_funds.
        4. Match per proposal = floor(quadratic_sum × pool / Σ quadratic_sum).
        5. Payout per proposal = collected_funds + match.
        6. Leftover = pool − Σ match, paid to leftover_addr.

    Returns:
        PayoutPlan with one line per proposal (id order); plan.total == budget.

    Raises:
        ArithmeticOverflow: Collected funds exceed the budget, or any
                            intermediate value leaves the amount range.
    """
    precision = parse_precision(round_config.algorithm, config)
    proposals = list(ledger.proposals())
    contributions = group_contributions(ledger.votes())

    collected_total = 0
    for proposal in proposals:
        collected_total = checked(collected_total + proposal.collected_funds, config, "collected funds")

    budget = round_config.budget.amount
    if collected_total > budget:
        raise ArithmeticOverflow(
            f"collected funds {collected_total} exceed the round budget {budget}"
        )
    pool = budget - collected_total

    sums = {
        p.id: quadratic_sum(contributions.get(p.id, {}).values(), precision, config)
        for p in proposals
    }
    result = allocate_matches(sums, pool, config)

    lines = []
    for proposal in proposals:
        match = result.matches[proposal.id]
        lines.append(
            ProposalPayout(
                proposal_id=proposal.id,
                fund_address=proposal.fund_address,
                collected_funds=proposal.collected_funds,
                quadratic_sum=sums[proposal.id],
                match=match,
                amount=checked(proposal.collected_funds + match, config, "payout"),
            )
        )

    plan = PayoutPlan(
        denom=round_config.budget.denom,
        proposals=tuple(lines),
        leftover_addr=round_config.leftover_addr,
        leftover=result.leftover,
    )
    logger.debug(
        "Planned distribution: %d proposals, pool %d, leftover %d.",
        len(lines), pool, plan.leftover,
    )
    return plan


def trigger_distribution(
    ledger: LedgerStore,
    round_config: RoundConfig,
    env: Env,
    caller: str,
    payments: PaymentExecutor,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PayoutPlan:
    """
    Close the round and execute the payout plan.

    Raises:
        Unauthorized:        Caller is not the admin.
        AlreadyDistributed:  The round has already been distributed.
        WrongPhase:          Not in the voting period, or the voting period has
                             a clock boundary that has not been reached yet.
        ArithmeticOverflow:  See plan_distribution().
    """
    if not is_admin(round_config.admin, caller):
        raise Unauthorized("only the admin can trigger distribution")

    phase = effective_phase(ledger.load_phase(), round_config, env)
    if phase is Phase.DISTRIBUTED:
        raise AlreadyDistributed("round has already been distributed")
    if phase is not Phase.VOTING_PERIOD:
        raise WrongPhase(f"distribution requires the voting period (phase: {phase.value})")

    voting_period = round_config.voting_period
    if not isinstance(voting_period, Never) and not voting_period.is_expired(env.height, env.time):
        raise WrongPhase(f"voting period not expired: ends at {voting_period}")

    plan = plan_distribution(ledger, round_config, config)

    ledger.save_plan(plan)
    ledger.save_phase(Phase.DISTRIBUTED)
    payments.execute(plan.denom, plan.as_mapping())

    logger.info(
        "Distribution executed: %d proposals paid, %d%s leftover to %s.",
        len(plan.proposals), plan.leftover, plan.denom, plan.leftover_addr,
    )
    return plan
