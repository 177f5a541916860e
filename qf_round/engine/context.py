"""
qf_round/engine/context.py: What the host hands the engine per invocation.

    Env            current block height and time.
    MessageInfo    caller address and attached funds.
    Response       attributes and bank transfers produced by an action.
    PaymentExecutor  host primitive that performs a payout plan's transfers.

Addresses are validated through an AddressValidator callable supplied by the
host; validate_address is the default used when the host supplies none.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from qf_round.state.models import Coin

AddressValidator = Callable[[str], bool]


@dataclass(frozen=True)
class Env:
    height: int
    time: int


@dataclass(frozen=True)
class MessageInfo:
    sender: str
    funds: tuple[Coin, ...] = ()


@dataclass(frozen=True)
class BankSend:
    to_address: str
    amount: Coin


@dataclass
class Response:
    """
    Outcome of a successful action.

    Fields:
        attributes:  Ordered (key, value) pairs describing the action.
        messages:    Bank transfers executed with the action (distribution only).
        data:        Action-specific payload, e.g. the new proposal id.
    """

    attributes: list[tuple[str, str]] = field(default_factory=list)
    messages: list[BankSend] = field(default_factory=list)
    data: Optional[object] = None

    def add_attribute(self, key: str, value) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> Optional[str]:
        for k, v in self.attributes:
            if k == key:
                return v
        return None


class PaymentExecutor(Protocol):
    def execute(self, denom: str, transfers: dict[str, int]) -> None:
        """Perform every transfer or raise; partial execution is not allowed."""
        ...


def validate_address(address: str) -> bool:
    """Non-empty, at most 255 characters, no whitespace."""
    return (
        isinstance(address, str)
        and 0 < len(address) <= 255
        and not any(ch.isspace() for ch in address)
    )
