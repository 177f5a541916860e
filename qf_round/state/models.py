"""
qf_round/state/models.py: Records held in the Ledger Store.

All amounts are non-negative Python ints in the round's single denomination.
Range checks against the denomination's representable range happen in the
engine (qf_round.engine.matching.checked) so that these records stay plain.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from qf_round.state.expiration import Expiration

CLR_ALGORITHM = "capital_constrained_liberal_radicalism"


class Phase(str, Enum):
    """Round lifecycle: PROPOSAL_PERIOD → VOTING_PERIOD → DISTRIBUTED."""

    PROPOSAL_PERIOD = "proposal_period"
    VOTING_PERIOD = "voting_period"
    DISTRIBUTED = "distributed"


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class FundingAlgorithm:
    """
    Funding algorithm selector plus its single parameter.

    Fields:
        kind:       Only 'capital_constrained_liberal_radicalism' exists.
        parameter:  Fixed-point precision of the square root, in decimal
                    digits, as a string ("" means 0).
    """

    kind: str = CLR_ALGORITHM
    parameter: str = ""


@dataclass(frozen=True)
class RoundConfig:
    """
    The round's singleton Config, written once at instantiation.

    Fields:
        admin:                      Only address allowed to advance the phase
                                    and trigger distribution.
        leftover_addr:              Receives rounding remainders (and the whole
                                    budget when no votes were cast).
        create_proposal_whitelist:  None = permissionless proposal creation.
        vote_proposal_whitelist:    None = permissionless voting.
        voting_period:              End of the voting period.
        proposal_period:            End of the proposal period.
        budget:                     Denomination and total amount of the round.
        algorithm:                  Funding algorithm selector.
    """

    admin: str
    leftover_addr: str
    create_proposal_whitelist: Optional[tuple[str, ...]]
    vote_proposal_whitelist: Optional[tuple[str, ...]]
    voting_period: Expiration
    proposal_period: Expiration
    budget: Coin
    algorithm: FundingAlgorithm = field(default_factory=FundingAlgorithm)


@dataclass(frozen=True)
class Proposal:
    id: int
    title: str
    description: str
    metadata: Optional[bytes]
    fund_address: str
    collected_funds: int = 0


@dataclass(frozen=True)
class Vote:
    proposal_id: int
    voter: str
    fund: Coin


@dataclass(frozen=True)
class ProposalPayout:
    """
    One proposal's line in a payout plan.

    Fields:
        proposal_id:      Proposal id.
        fund_address:     Recipient of ``amount``.
        collected_funds:  Direct vote funds attributed to the proposal.
        quadratic_sum:    (Σ rounded sqrt(per-voter contribution))², fixed point.
        match:            Matching share, rounded down.
        amount:           collected_funds + match.
    """

    proposal_id: int
    fund_address: str
    collected_funds: int
    quadratic_sum: int
    match: int
    amount: int


@dataclass(frozen=True)
class PayoutPlan:
    """
    Result of a distribution: one line per proposal plus the leftover.

    ``total`` always equals the round budget.
    """

    denom: str
    proposals: tuple[ProposalPayout, ...]
    leftover_addr: str
    leftover: int

    @property
    def total(self) -> int:
        return sum(p.amount for p in self.proposals) + self.leftover

    def as_mapping(self) -> dict[str, int]:
        """
        Recipient address → amount, in proposal id order with the leftover
        recipient last. Proposals sharing a fund address are merged.
        """
        mapping: dict[str, int] = {}
        for line in self.proposals:
            mapping[line.fund_address] = mapping.get(line.fund_address, 0) + line.amount
        mapping[self.leftover_addr] = mapping.get(self.leftover_addr, 0) + self.leftover
        return mapping
