"""
qf_round/engine/messages.py: Instantiate, execute and query messages.

Execute and query messages are closed sets of variants; the contract matches
them exhaustively at the dispatch boundary. The JSON wire form is externally
tagged with snake_case names:

    {"create_proposal": {"title": ..., "description": ..., "metadata": <b64|null>,
                         "fund_address": ...}}
    {"vote_proposal": {"proposal_id": 1}}
    {"trigger_distribution": {}}
    {"advance_phase": {}}

    {"proposal_by_id": {"id": 1}}   {"all_proposals": {}}   {"round_status": {}}
    {"distribution": {}}            {"preview_distribution": {}}
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from qf_round.errors import InvalidInput
from qf_round.state.codec import algorithm_from_json, decode_binary
from qf_round.state.expiration import Expiration, Never, expiration_from_json
from qf_round.state.models import FundingAlgorithm


@dataclass(frozen=True)
class InstantiateMsg:
    admin: str
    leftover_addr: str
    budget_denom: str
    voting_period: Expiration = field(default_factory=Never)
    proposal_period: Expiration = field(default_factory=Never)
    create_proposal_whitelist: Optional[tuple[str, ...]] = None
    vote_proposal_whitelist: Optional[tuple[str, ...]] = None
    algorithm: FundingAlgorithm = field(default_factory=FundingAlgorithm)


# ── Execute ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CreateProposal:
    title: str
    description: str
    fund_address: str
    metadata: Optional[bytes] = None


@dataclass(frozen=True)
class VoteProposal:
    proposal_id: int


@dataclass(frozen=True)
class TriggerDistribution:
    pass


@dataclass(frozen=True)
class AdvancePhase:
    pass


ExecuteMsg = Union[CreateProposal, VoteProposal, TriggerDistribution, AdvancePhase]


# ── Query ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProposalById:
    id: int


@dataclass(frozen=True)
class AllProposals:
    pass


@dataclass(frozen=True)
class RoundStatus:
    pass


@dataclass(frozen=True)
class Distribution:
    pass


@dataclass(frozen=True)
class PreviewDistribution:
    pass


QueryMsg = Union[ProposalById, AllProposals, RoundStatus, Distribution, PreviewDistribution]


# ── Wire parsing ──────────────────────────────────────────────────────────────

def _untag(raw: Any, what: str) -> tuple[str, dict]:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise InvalidInput(f"{what} must be a single-key object, got {raw!r}")
    (tag, body), = raw.items()
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise InvalidInput(f"{what} {tag!r} body must be an object")
    return tag, body


def _str(body: dict, name: str, default: Optional[str] = None) -> str:
    value = body.get(name, default)
    if not isinstance(value, str):
        raise InvalidInput(f"{name} must be a string")
    return value


def _id(body: dict, name: str) -> int:
    value = body.get(name)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _whitelist(raw: Any, name: str) -> Optional[tuple[str, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list) or not all(isinstance(a, str) for a in raw):
        raise InvalidInput(f"{name} must be a list of addresses or null")
    return tuple(raw)


def parse_instantiate_msg(raw: dict) -> InstantiateMsg:
    if not isinstance(raw, dict):
        raise InvalidInput("instantiate message must be an object")
    algorithm_raw = raw.get("algorithm")
    return InstantiateMsg(
        admin=_str(raw, "admin"),
        leftover_addr=_str(raw, "leftover_addr"),
        budget_denom=_str(raw, "budget_denom"),
        voting_period=expiration_from_json(raw.get("voting_period", {"never": {}})),
        proposal_period=expiration_from_json(raw.get("proposal_period", {"never": {}})),
        create_proposal_whitelist=_whitelist(
            raw.get("create_proposal_whitelist"), "create_proposal_whitelist"
        ),
        vote_proposal_whitelist=_whitelist(
            raw.get("vote_proposal_whitelist"), "vote_proposal_whitelist"
        ),
        algorithm=(
            algorithm_from_json(algorithm_raw) if algorithm_raw is not None else FundingAlgorithm()
        ),
    )


def parse_execute_msg(raw: Any) -> ExecuteMsg:
    tag, body = _untag(raw, "execute message")
    if tag == "create_proposal":
        metadata = body.get("metadata")
        if metadata is not None and not isinstance(metadata, str):
            raise InvalidInput("metadata must be base64 text or null")
        return CreateProposal(
            title=_str(body, "title"),
            description=_str(body, "description", ""),
            fund_address=_str(body, "fund_address"),
            metadata=decode_binary(metadata),
        )
    if tag == "vote_proposal":
        return VoteProposal(proposal_id=_id(body, "proposal_id"))
    if tag == "trigger_distribution":
        return TriggerDistribution()
    if tag == "advance_phase":
        return AdvancePhase()
    raise InvalidInput(f"unknown execute message {tag!r}")


def parse_query_msg(raw: Any) -> QueryMsg:
    tag, body = _untag(raw, "query message")
    if tag == "proposal_by_id":
        return ProposalById(id=_id(body, "id"))
    if tag == "all_proposals":
        return AllProposals()
    if tag == "round_status":
        return RoundStatus()
    if tag == "distribution":
        return Distribution()
    if tag == "preview_distribution":
        return PreviewDistribution()
    raise InvalidInput(f"unknown query message {tag!r}")
