"""
qf_round/state/expiration.py: Phase boundaries.

A boundary is one of three forms:

    Never         never reached; the admin closes the phase explicitly.
    AtHeight(h)   reached when the current block height >= h.
    AtTime(t)     reached when the current block time (seconds) >= t.

Wire form (externally tagged): {"never": {}}, {"at_height": h}, {"at_time": t}.
"""

from dataclasses import dataclass
from typing import Union

from qf_round.errors import InvalidInput


@dataclass(frozen=True)
class Never:
    def is_expired(self, height: int, time: int) -> bool:
        return False

    def __str__(self) -> str:
        return "never"


@dataclass(frozen=True)
class AtHeight:
    height: int

    def is_expired(self, height: int, time: int) -> bool:
        return height >= self.height

    def __str__(self) -> str:
        return f"height {self.height}"


@dataclass(frozen=True)
class AtTime:
    time: int

    def is_expired(self, height: int, time: int) -> bool:
        return time >= self.time

    def __str__(self) -> str:
        return f"time {self.time}"


Expiration = Union[Never, AtHeight, AtTime]


def expiration_to_json(expiration: Expiration) -> dict:
    if isinstance(expiration, Never):
        return {"never": {}}
    if isinstance(expiration, AtHeight):
        return {"at_height": expiration.height}
    if isinstance(expiration, AtTime):
        return {"at_time": expiration.time}
    raise TypeError(f"not an Expiration: {expiration!r}")


def expiration_from_json(raw) -> Expiration:
    """
    Decode the externally tagged wire form.

    Raises:
        InvalidInput: If ``raw`` is not exactly one known tag with a
                      non-negative integer payload.
    """
    if not isinstance(raw, dict) or len(raw) != 1:
        raise InvalidInput(f"expiration must be a single-key object, got {raw!r}")

    (tag, value), = raw.items()
    if tag == "never":
        return Never()
    if tag in ("at_height", "at_time"):
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise InvalidInput(f"{tag} expects an integer, got {value!r}")
        try:
            number = int(value)
        except ValueError as exc:
            raise InvalidInput(f"{tag} expects an integer, got {value!r}") from exc
        if number < 0:
            raise InvalidInput(f"{tag} must be non-negative, got {number}")
        return AtHeight(number) if tag == "at_height" else AtTime(number)

    raise InvalidInput(f"unknown expiration variant {tag!r}")
