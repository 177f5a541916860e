"""
qf_round.reports: Round payout reporting.

Modules:
    round_report  Payout table (pandas), round summary and Markdown export.
"""
