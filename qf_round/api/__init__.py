"""
qf_round.api: FastAPI surface over an in-process LocalHost.

Modules:
    endpoints  create_app(host) exposing the round's actions and queries:
        GET  /api/v1/health
        GET  /api/v1/round                       config + effective phase
        GET  /api/v1/proposals                   all proposals
        GET  /api/v1/proposals/{id}              one proposal
        POST /api/v1/proposals                   create_proposal
        POST /api/v1/proposals/{id}/votes        vote_proposal
        POST /api/v1/phase/advance               advance_phase (admin)
        POST /api/v1/distribution                trigger_distribution (admin)
        GET  /api/v1/distribution                committed payout plan
        GET  /api/v1/distribution/preview        planning preview
        POST /api/v1/blocks                      advance the local clock
"""
