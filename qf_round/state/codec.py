"""
qf_round/state/codec.py: Canonical JSON encoding of round records.

Used for values in the key-value store and for the scenario / API wire form.
Amounts travel as decimal strings so that values beyond 2**53 survive any
JSON consumer; metadata blobs travel as base64. Encoding is canonical
(sorted keys, no whitespace) so that identical state yields identical bytes.
"""

import base64
import binascii
import json
from typing import Any, Optional

from qf_round.errors import InvalidInput
from qf_round.state.expiration import expiration_from_json, expiration_to_json
from qf_round.state.models import (
    Coin,
    FundingAlgorithm,
    PayoutPlan,
    Phase,
    Proposal,
    ProposalPayout,
    RoundConfig,
    Vote,
)


def dumps(obj: Any) -> bytes:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")


def loads(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


# ── Scalars ───────────────────────────────────────────────────────────────────

def parse_amount(value: Any, what: str = "amount") -> int:
    """Parse a non-negative integer amount from a decimal string or int."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidInput(f"{what} must be a decimal string or integer, got {value!r}")
    if isinstance(value, str):
        if not (value.isascii() and value.isdigit()):
            raise InvalidInput(f"{what} must be a non-negative decimal string, got {value!r}")
        value = int(value)
    if value < 0:
        raise InvalidInput(f"{what} must be non-negative, got {value}")
    return value


def encode_binary(blob: Optional[bytes]) -> Optional[str]:
    if blob is None:
        return None
    return base64.b64encode(blob).decode("ascii")


def decode_binary(text: Optional[str]) -> Optional[bytes]:
    if text is None:
        return None
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput(f"metadata is not valid base64: {exc}") from exc


def _whitelist_to_json(whitelist: Optional[tuple[str, ...]]) -> Optional[list[str]]:
    return list(whitelist) if whitelist is not None else None


def _whitelist_from_json(raw: Any, what: str) -> Optional[tuple[str, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list) or not all(isinstance(a, str) for a in raw):
        raise InvalidInput(f"{what} must be a list of addresses or null")
    return tuple(raw)


# ── Records ───────────────────────────────────────────────────────────────────

def coin_to_json(coin: Coin) -> dict:
    return {"denom": coin.denom, "amount": str(coin.amount)}


def coin_from_json(raw: Any) -> Coin:
    if not isinstance(raw, dict) or not isinstance(raw.get("denom"), str):
        raise InvalidInput(f"coin must be an object with a denom, got {raw!r}")
    return Coin(denom=raw["denom"], amount=parse_amount(raw.get("amount"), "coin amount"))


def algorithm_to_json(algorithm: FundingAlgorithm) -> dict:
    return {algorithm.kind: {"parameter": algorithm.parameter}}


def algorithm_from_json(raw: Any) -> FundingAlgorithm:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise InvalidInput(f"algorithm must be a single-key object, got {raw!r}")
    (kind, body), = raw.items()
    parameter = (body or {}).get("parameter", "") if isinstance(body, dict) else None
    if not isinstance(parameter, str):
        raise InvalidInput("algorithm parameter must be a string")
    return FundingAlgorithm(kind=kind, parameter=parameter)


def config_to_json(config: RoundConfig) -> dict:
    return {
        "admin": config.admin,
        "leftover_addr": config.leftover_addr,
        "create_proposal_whitelist": _whitelist_to_json(config.create_proposal_whitelist),
        "vote_proposal_whitelist": _whitelist_to_json(config.vote_proposal_whitelist),
        "voting_period": expiration_to_json(config.voting_period),
        "proposal_period": expiration_to_json(config.proposal_period),
        "budget": coin_to_json(config.budget),
        "algorithm": algorithm_to_json(config.algorithm),
    }


def config_from_json(raw: dict) -> RoundConfig:
    return RoundConfig(
        admin=raw["admin"],
        leftover_addr=raw["leftover_addr"],
        create_proposal_whitelist=_whitelist_from_json(
            raw.get("create_proposal_whitelist"), "create_proposal_whitelist"
        ),
        vote_proposal_whitelist=_whitelist_from_json(
            raw.get("vote_proposal_whitelist"), "vote_proposal_whitelist"
        ),
        voting_period=expiration_from_json(raw["voting_period"]),
        proposal_period=expiration_from_json(raw["proposal_period"]),
        budget=coin_from_json(raw["budget"]),
        algorithm=algorithm_from_json(raw["algorithm"]),
    )


def proposal_to_json(proposal: Proposal) -> dict:
    return {
        "id": proposal.id,
        "title": proposal.title,
        "description": proposal.description,
        "metadata": encode_binary(proposal.metadata),
        "fund_address": proposal.fund_address,
        "collected_funds": str(proposal.collected_funds),
    }


def proposal_from_json(raw: dict) -> Proposal:
    return Proposal(
        id=int(raw["id"]),
        title=raw["title"],
        description=raw["description"],
        metadata=decode_binary(raw.get("metadata")),
        fund_address=raw["fund_address"],
        collected_funds=parse_amount(raw["collected_funds"], "collected_funds"),
    )


def vote_to_json(vote: Vote) -> dict:
    return {
        "proposal_id": vote.proposal_id,
        "voter": vote.voter,
        "fund": coin_to_json(vote.fund),
    }


def vote_from_json(raw: dict) -> Vote:
    return Vote(
        proposal_id=int(raw["proposal_id"]),
        voter=raw["voter"],
        fund=coin_from_json(raw["fund"]),
    )


def plan_to_json(plan: PayoutPlan) -> dict:
    return {
        "denom": plan.denom,
        "proposals": [
            {
                "proposal_id": line.proposal_id,
                "fund_address": line.fund_address,
                "collected_funds": str(line.collected_funds),
                "quadratic_sum": str(line.quadratic_sum),
                "match": str(line.match),
                "amount": str(line.amount),
            }
            for line in plan.proposals
        ],
        "leftover_addr": plan.leftover_addr,
        "leftover": str(plan.leftover),
    }


def plan_from_json(raw: dict) -> PayoutPlan:
    return PayoutPlan(
        denom=raw["denom"],
        proposals=tuple(
            ProposalPayout(
                proposal_id=int(line["proposal_id"]),
                fund_address=line["fund_address"],
                collected_funds=parse_amount(line["collected_funds"]),
                quadratic_sum=parse_amount(line["quadratic_sum"]),
                match=parse_amount(line["match"]),
                amount=parse_amount(line["amount"]),
            )
            for line in raw["proposals"]
        ),
        leftover_addr=raw["leftover_addr"],
        leftover=parse_amount(raw["leftover"]),
    )


def phase_to_json(phase: Phase) -> str:
    return phase.value


def phase_from_json(raw: str) -> Phase:
    return Phase(raw)
