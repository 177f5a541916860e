"""
qf_round/api/endpoints.py: FastAPI application for a locally hosted round.

The app wraps one LocalHost. Handlers are ``async def`` and call the engine
synchronously, so the event loop applies one action fully before the next,
which is the execution model the engine assumes.

Engine errors map to HTTP statuses:
    not_found                          404
    unauthorized                       403
    wrong_phase, already_distributed   409
    invalid_input, arithmetic_overflow 422
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from qf_round import __version__
from qf_round.engine.context import Response
from qf_round.engine.messages import (
    AdvancePhase,
    AllProposals,
    CreateProposal,
    Distribution,
    PreviewDistribution,
    ProposalById,
    RoundStatus,
    TriggerDistribution,
    VoteProposal,
)
from qf_round.errors import RoundError
from qf_round.host import LocalHost
from qf_round.state import codec
from qf_round.state.models import Coin

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "unauthorized": 403,
    "wrong_phase": 409,
    "already_distributed": 409,
    "invalid_input": 422,
    "arithmetic_overflow": 422,
}


# ── Request / Response models ─────────────────────────────────────────────────

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class CreateProposalRequest(BaseModel):
    sender: str
    title: str
    description: str = ""
    fund_address: str
    metadata: Optional[str] = Field(default=None, description="base64 blob")


class VoteRequest(BaseModel):
    sender: str
    denom: str
    amount: str = Field(description="decimal string")


class AdminRequest(BaseModel):
    sender: str


class AdvanceBlocksRequest(BaseModel):
    blocks: int = Field(default=1, ge=0)


def _response_json(response: Response) -> dict:
    return {
        "attributes": [{"key": k, "value": v} for k, v in response.attributes],
        "messages": [
            {"to_address": m.to_address, "amount": codec.coin_to_json(m.amount)}
            for m in response.messages
        ],
    }


def create_app(host: Optional[LocalHost] = None) -> FastAPI:
    """
    Create the round API around ``host``.

    Args:
        host: LocalHost holding an instantiated round. A fresh, empty host is
              created when None; its round must then be instantiated directly
              through ``app.state.host``.

    Returns:
        Configured FastAPI application; the host is at ``app.state.host``.
    """
    app = FastAPI(
        title="Quadratic Funding Round API",
        version=__version__,
        description="Proposals, votes and quadratic funding distribution for one round.",
    )
    app.state.host = host or LocalHost()

    @app.exception_handler(RoundError)
    async def round_error_handler(request: Request, exc: RoundError) -> JSONResponse:
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.kind, 400),
            content={"error": exc.kind, "detail": exc.message},
        )

    def _host() -> LocalHost:
        return app.state.host

    # ── Routes ────────────────────────────────────────────────────────────────

    @app.get("/api/v1/health", response_model=HealthResponse, tags=["system"])
    async def health() -> dict:
        """Liveness probe: service status and version."""
        return {"status": "ok", "version": __version__}

    @app.get("/api/v1/round", tags=["round"])
    async def get_round() -> dict:
        host = _host()
        status = host.query(RoundStatus())
        return {
            "config": codec.config_to_json(status.config),
            "phase": status.phase.value,
            "proposal_count": status.proposal_count,
            "vote_count": status.vote_count,
            "height": host.height,
            "time": host.time,
        }

    @app.get("/api/v1/proposals", tags=["proposals"])
    async def list_proposals() -> dict:
        proposals = _host().query(AllProposals())
        return {"proposals": [codec.proposal_to_json(p) for p in proposals]}

    @app.get("/api/v1/proposals/{proposal_id}", tags=["proposals"])
    async def get_proposal(proposal_id: int) -> dict:
        return codec.proposal_to_json(_host().query(ProposalById(id=proposal_id)))

    @app.post("/api/v1/proposals", tags=["proposals"])
    async def create_proposal(body: CreateProposalRequest) -> dict:
        msg = CreateProposal(
            title=body.title,
            description=body.description,
            fund_address=body.fund_address,
            metadata=codec.decode_binary(body.metadata),
        )
        response = _host().execute(body.sender, msg)
        return {"proposal_id": response.data, **_response_json(response)}

    @app.post("/api/v1/proposals/{proposal_id}/votes", tags=["proposals"])
    async def vote_proposal(proposal_id: int, body: VoteRequest) -> dict:
        fund = Coin(denom=body.denom, amount=codec.parse_amount(body.amount))
        response = _host().execute(body.sender, VoteProposal(proposal_id=proposal_id), (fund,))
        return _response_json(response)

    @app.post("/api/v1/phase/advance", tags=["round"])
    async def advance_phase(body: AdminRequest) -> dict:
        return _response_json(_host().execute(body.sender, AdvancePhase()))

    @app.post("/api/v1/distribution", tags=["distribution"])
    async def trigger_distribution(body: AdminRequest) -> dict:
        response = _host().execute(body.sender, TriggerDistribution())
        return {"plan": codec.plan_to_json(response.data), **_response_json(response)}

    @app.get("/api/v1/distribution", tags=["distribution"])
    async def get_distribution() -> dict:
        return codec.plan_to_json(_host().query(Distribution()))

    @app.get("/api/v1/distribution/preview", tags=["distribution"])
    async def preview_distribution() -> dict:
        return codec.plan_to_json(_host().query(PreviewDistribution()))

    @app.post("/api/v1/blocks", tags=["system"])
    async def advance_blocks(body: AdvanceBlocksRequest) -> dict:
        env = _host().advance_blocks(body.blocks)
        return {"height": env.height, "time": env.time}

    logger.info("Quadratic funding round API created.")
    return app
