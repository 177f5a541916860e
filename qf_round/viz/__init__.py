"""
qf_round.viz: Payout figures.

Modules:
    figures  Stacked direct-funds / match bar chart per proposal (matplotlib).
"""

from qf_round.viz.figures import plot_payouts
