"""
qf_round/host.py: In-process host for simulations, the CLI and the API.

LocalHost plays the role of the execution environment around one round:

    - a MemoryStore holding the round's key-value state;
    - a block clock (height and time, advanced explicitly);
    - a bank of balances per (address, denom);
    - the payment executor used by distribution.

Each call debits the attached funds from the sender into the round account,
runs the engine and, if the engine raises, restores balances and leaves the
store untouched. Payouts are taken from the round account.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.engine import contract
from qf_round.engine.context import Env, MessageInfo, Response, validate_address
from qf_round.engine.messages import ExecuteMsg, InstantiateMsg, QueryMsg
from qf_round.errors import InvalidInput
from qf_round.state.codec import coin_from_json
from qf_round.state.models import Coin
from qf_round.storage.kv import MemoryStore

logger = logging.getLogger(__name__)

ROUND_ACCOUNT = "qf_round_contract"


class InsufficientFunds(InvalidInput):
    """Sender cannot cover the funds attached to a call."""


@dataclass
class Bank:
    balances: dict[tuple[str, str], int] = field(default_factory=dict)

    def balance(self, address: str, denom: str) -> int:
        return self.balances.get((address, denom), 0)

    def mint(self, address: str, coin: Coin) -> None:
        key = (address, coin.denom)
        self.balances[key] = self.balances.get(key, 0) + coin.amount

    def transfer(self, sender: str, recipient: str, coin: Coin) -> None:
        if coin.amount < 0:
            raise InvalidInput(f"cannot transfer a negative amount: {coin}")
        if self.balance(sender, coin.denom) < coin.amount:
            raise InsufficientFunds(
                f"{sender} has {self.balance(sender, coin.denom)}{coin.denom}, needs {coin}"
            )
        self.balances[(sender, coin.denom)] -= coin.amount
        key = (recipient, coin.denom)
        self.balances[key] = self.balances.get(key, 0) + coin.amount


class RoundPaymentExecutor:
    """Pays a distribution plan out of the round account, all or nothing."""

    def __init__(self, bank: Bank, account: str = ROUND_ACCOUNT):
        self.bank = bank
        self.account = account

    def execute(self, denom: str, transfers: dict[str, int]) -> None:
        total = sum(transfers.values())
        available = self.bank.balance(self.account, denom)
        if available < total:
            raise InsufficientFunds(
                f"round account holds {available}{denom}, payout plan needs {total}{denom}"
            )
        for address, amount in transfers.items():
            self.bank.transfer(self.account, address, Coin(denom, amount))
        logger.debug("Executed %d transfers totalling %d%s.", len(transfers), total, denom)


class LocalHost:
    def __init__(
        self,
        height: int = 1,
        time: int = 1_700_000_000,
        block_seconds: int = 5,
        config: EngineConfig = DEFAULT_CONFIG,
    ):
        self.store = MemoryStore()
        self.bank = Bank()
        self.height = height
        self.time = time
        self.block_seconds = block_seconds
        self.config = config
        self.payments = RoundPaymentExecutor(self.bank)

    # ── Clock ─────────────────────────────────────────────────────────────────

    @property
    def env(self) -> Env:
        return Env(height=self.height, time=self.time)

    def advance_blocks(self, blocks: int = 1) -> Env:
        self.height += blocks
        self.time += blocks * self.block_seconds
        return self.env

    # ── Invocation ────────────────────────────────────────────────────────────

    def _debit(self, sender: str, funds: tuple[Coin, ...]) -> None:
        for coin in funds:
            self.bank.transfer(sender, ROUND_ACCOUNT, coin)

    def _call(self, sender: str, funds: tuple[Coin, ...], invoke) -> Response:
        saved_balances = dict(self.bank.balances)
        try:
            self._debit(sender, funds)
            return invoke(MessageInfo(sender=sender, funds=funds))
        except Exception:
            self.bank.balances = saved_balances
            raise

    def instantiate(self, sender: str, msg: InstantiateMsg, funds: tuple[Coin, ...] = ()) -> Response:
        return self._call(
            sender,
            funds,
            lambda info: contract.instantiate(
                self.store, self.env, info, msg, validate_address, self.config
            ),
        )

    def execute(self, sender: str, msg: ExecuteMsg, funds: tuple[Coin, ...] = ()) -> Response:
        return self._call(
            sender,
            funds,
            lambda info: contract.execute(
                self.store, self.env, info, msg, self.payments, validate_address, self.config
            ),
        )

    def query(self, msg: QueryMsg):
        return contract.query(self.store, self.env, msg, self.config)

    def round_balance(self, denom: str) -> int:
        return self.bank.balance(ROUND_ACCOUNT, denom)


def coins(amount: int, denom: str) -> tuple[Coin, ...]:
    return (Coin(denom=denom, amount=amount),)


def parse_funds(raw: Optional[list]) -> tuple[Coin, ...]:
    """Parse ``[{"denom": ..., "amount": ...}, ...]`` into attached funds."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise InvalidInput("funds must be a list of coins")
    return tuple(coin_from_json(c) for c in raw)
