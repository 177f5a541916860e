"""
qf_round: Quadratic Funding round engine.

A fixed-lifetime ledger that accepts a matching-pool deposit, collects
proposals and coin-denominated votes, and redistributes the pooled budget to
proposals with the capital-constrained quadratic funding formula once voting
closes.

Subpackages:
    state     Expiration, round records and their canonical JSON codec.
    storage   Key-value store interface, staged commit buffer, ledger accessors.
    engine    Access control, proposal/vote registry, matching, distribution.
    reports   Payout tables and Markdown round reports.
    viz       Payout figures.
    api       FastAPI surface over an in-process host.
"""

__version__ = "0.1.0"
