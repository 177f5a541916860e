"""
qf_round/errors.py: Error kinds surfaced by the round engine.

Every failure leaves stored state unchanged; the contract entry points discard
the staged writes of the failing invocation before re-raising.
"""


class RoundError(Exception):
    """Base class for all engine errors. ``kind`` is a stable identifier."""

    kind = "round_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class WrongPhase(RoundError):
    """The action is not valid in the round's current phase."""

    kind = "wrong_phase"


class Unauthorized(RoundError):
    """Caller is not on the required whitelist or is not the admin."""

    kind = "unauthorized"


class NotFound(RoundError):
    """A referenced record does not exist."""

    kind = "not_found"


class InvalidInput(RoundError):
    """Malformed title, address, funds or instantiate parameters."""

    kind = "invalid_input"


class AlreadyDistributed(RoundError):
    """Distribution has already been executed for this round."""

    kind = "already_distributed"


class ArithmeticOverflow(RoundError):
    """An amount left the denomination's representable range."""

    kind = "arithmetic_overflow"


ERROR_KINDS = {
    cls.kind: cls
    for cls in (
        WrongPhase,
        Unauthorized,
        NotFound,
        InvalidInput,
        AlreadyDistributed,
        ArithmeticOverflow,
    )
}
