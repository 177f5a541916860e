"""
qf_round.engine: Round logic.

Modules:
    access        Whitelist and admin checks.
    context       Env, MessageInfo, Response and host-side interfaces.
    messages      Instantiate / execute / query message variants and parsing.
    registry      Phase machine, proposal creation, vote recording.
    matching      Quadratic funding arithmetic with overflow checks.
    distribution  Payout planning and the distribution trigger.
    contract      instantiate / execute / query entry points.
"""

from qf_round.engine.contract import RoundStatusResponse, execute, instantiate, query
