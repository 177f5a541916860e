"""
qf_round/engine/matching.py: Capital-constrained quadratic funding math.

Pure integer arithmetic. Given the same votes, budget and precision the result
is identical on every run and every platform.

Definitions (p = precision in decimal digits, S = 10**p):

    root(c)          = sqrt(c * S²) rounded half up        (fixed point, units 1/S)
    quadratic_sum    = (Σ_voters root(contribution_v))²    (units 1/S²)
    pool             = budget − Σ collected_funds
    match_i          = floor(quadratic_sum_i × pool / Σ quadratic_sum)
    leftover         = pool − Σ match_i

A voter who votes several times on one proposal counts once, with the sum of
their votes. When no votes exist Σ quadratic_sum is 0, every match is 0 and
the whole pool is leftover.

Every intermediate value is checked against the denomination's range
(EngineConfig.max_amount); leaving it raises ArithmeticOverflow instead of
wrapping.
"""

import logging
from dataclasses import dataclass
from math import isqrt
from typing import Iterable

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.errors import ArithmeticOverflow, InvalidInput
from qf_round.state.models import CLR_ALGORITHM, FundingAlgorithm, Vote

logger = logging.getLogger(__name__)


def checked(value: int, config: EngineConfig = DEFAULT_CONFIG, what: str = "amount") -> int:
    """Return ``value`` if it lies in [0, config.max_amount], else raise ArithmeticOverflow."""
    if value < 0:
        raise ArithmeticOverflow(f"{what} underflows: {value}")
    if value > config.max_amount:
        raise ArithmeticOverflow(f"{what} exceeds the {config.amount_bits}-bit amount range")
    return value


def parse_precision(algorithm: FundingAlgorithm, config: EngineConfig = DEFAULT_CONFIG) -> int:
    """
    Fixed-point precision encoded in the algorithm parameter.

    Raises:
        InvalidInput: Unknown algorithm kind, or a parameter that is not an
                      integer in [0, config.max_sqrt_precision].
    """
    if algorithm.kind != CLR_ALGORITHM:
        raise InvalidInput(f"unsupported funding algorithm {algorithm.kind!r}")
    text = algorithm.parameter.strip()
    if text == "":
        return 0
    if not (text.isascii() and text.isdigit()):
        raise InvalidInput(f"algorithm parameter must be a non-negative integer, got {algorithm.parameter!r}")
    precision = int(text)
    if precision > config.max_sqrt_precision:
        raise InvalidInput(
            f"algorithm parameter {precision} exceeds the maximum precision {config.max_sqrt_precision}"
        )
    return precision


def isqrt_half_up(n: int) -> int:
    """
    Square root of a non-negative integer, rounded half up.

    sqrt(n) >= r + 1/2  <=>  n >= r² + r + 1/4  <=>  n - r² > r  (integers).
    """
    r = isqrt(n)
    if n - r * r > r:
        r += 1
    return r


def group_contributions(votes: Iterable[Vote]) -> dict[int, dict[str, int]]:
    """
    Sum vote amounts per (proposal, voter).

    Returns:
        proposal_id → {voter → total contribution}, voters in first-vote order.
    """
    grouped: dict[int, dict[str, int]] = {}
    for vote in votes:
        per_voter = grouped.setdefault(vote.proposal_id, {})
        per_voter[vote.voter] = per_voter.get(vote.voter, 0) + vote.fund.amount
    return grouped


def quadratic_sum(
    contributions: Iterable[int],
    precision: int = 0,
    config: EngineConfig = DEFAULT_CONFIG,
) -> int:
    """(Σ root(c))² for one proposal's per-voter contributions, in units 1/S²."""
    scale = 10 ** (2 * precision)
    root_sum = 0
    for contribution in contributions:
        scaled = checked(checked(contribution, config, "contribution") * scale, config, "scaled contribution")
        root_sum = checked(root_sum + isqrt_half_up(scaled), config, "sum of square roots")
    return checked(root_sum * root_sum, config, "quadratic sum")


@dataclass(frozen=True)
class MatchResult:
    """
    Fields:
        matches:        proposal_id → matching share (rounded down).
        leftover:       pool − Σ matches.
        total_weight:   Σ quadratic sums.
    """

    matches: dict[int, int]
    leftover: int
    total_weight: int


def allocate_matches(
    quadratic_sums: dict[int, int],
    pool: int,
    config: EngineConfig = DEFAULT_CONFIG,
) -> MatchResult:
    """Split ``pool`` proportionally to ``quadratic_sums``, rounding every share down."""
    checked(pool, config, "matching pool")
    total = 0
    for value in quadratic_sums.values():
        total = checked(total + value, config, "total quadratic sum")

    if total == 0:
        logger.debug("No quadratic weight; the whole pool of %d is leftover.", pool)
        return MatchResult(matches={pid: 0 for pid in quadratic_sums}, leftover=pool, total_weight=0)

    matches: dict[int, int] = {}
    for pid, value in quadratic_sums.items():
        matches[pid] = checked(value * pool, config, "weighted share") // total

    leftover = pool - sum(matches.values())
    logger.debug(
        "Allocated %d of %d across %d proposals (leftover %d).",
        pool - leftover, pool, len(matches), leftover,
    )
    return MatchResult(matches=matches, leftover=leftover, total_weight=total)
