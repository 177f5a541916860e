"""
qf_round/config.py: Engine tunables.

The round's own Config (admin, whitelists, periods, budget, algorithm) is a
ledger record, see qf_round.state.models.RoundConfig. This module only holds
the parameters of the engine itself: numeric range of the denomination,
fixed-point limits, key layout and output locations.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable configuration for the round engine.

    Override by constructing a new EngineConfig with the desired values and
    passing it explicitly to the engine entry points.
    """

    # ── Arithmetic ────────────────────────────────────────────────────────────
    amount_bits: int = 128
    # Every stored amount and every intermediate product of the matching
    # computation must fit in [0, 2**amount_bits - 1].

    max_sqrt_precision: int = 18
    # Upper bound on the fixed-point precision (decimal digits) accepted as the
    # quadratic funding algorithm parameter.

    # ── Storage layout ────────────────────────────────────────────────────────
    key_width: int = 20
    # Proposal ids and vote sequence numbers are zero-padded to this width in
    # store keys so that prefix iteration yields creation order.

    # ── Output paths ──────────────────────────────────────────────────────────
    report_dir: str = "reports"
    figures_dir: str = "reports/figures"

    @property
    def max_amount(self) -> int:
        return (1 << self.amount_bits) - 1


# Singleton default: import this everywhere instead of constructing anew.
DEFAULT_CONFIG = EngineConfig()
