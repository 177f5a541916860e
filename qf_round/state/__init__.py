"""
qf_round.state: round records and phase boundaries.

Modules:
    expiration  Never / AtHeight / AtTime phase boundaries.
    models      Coin, FundingAlgorithm, RoundConfig, Proposal, Vote, Phase,
                PayoutPlan.
    codec       Canonical JSON encoding of every record for the key-value store.
"""

from qf_round.state.expiration import AtHeight, AtTime, Expiration, Never
from qf_round.state.models import (
    Coin,
    FundingAlgorithm,
    PayoutPlan,
    Phase,
    Proposal,
    ProposalPayout,
    RoundConfig,
    Vote,
)
