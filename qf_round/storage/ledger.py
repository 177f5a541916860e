"""
qf_round/storage/ledger.py: Typed accessors over the round's key-value state.

Key layout:
    config                      RoundConfig (written once)
    phase                       persisted Phase
    proposal_seq                last allocated proposal id
    vote_seq                    last allocated vote sequence number
    proposal/<id, padded>       Proposal
    vote/<seq, padded>          Vote (append-only)
    distribution                committed PayoutPlan
"""

from typing import Iterator, Optional

from qf_round.config import DEFAULT_CONFIG, EngineConfig
from qf_round.errors import NotFound
from qf_round.state import codec
from qf_round.state.models import PayoutPlan, Phase, Proposal, RoundConfig, Vote
from qf_round.storage.kv import KeyValueStore

CONFIG_KEY = "config"
PHASE_KEY = "phase"
PROPOSAL_SEQ_KEY = "proposal_seq"
VOTE_SEQ_KEY = "vote_seq"
PROPOSAL_PREFIX = "proposal/"
VOTE_PREFIX = "vote/"
DISTRIBUTION_KEY = "distribution"


class LedgerStore:
    def __init__(self, store: KeyValueStore, config: EngineConfig = DEFAULT_CONFIG):
        self.store = store
        self.config = config

    def _key(self, prefix: str, number: int) -> str:
        return f"{prefix}{number:0{self.config.key_width}d}"

    def _load(self, key: str):
        raw = self.store.read(key)
        return None if raw is None else codec.loads(raw)

    def _save(self, key: str, obj) -> None:
        self.store.write(key, codec.dumps(obj))

    # ── Config ────────────────────────────────────────────────────────────────

    def is_instantiated(self) -> bool:
        return self.store.read(CONFIG_KEY) is not None

    def load_config(self) -> RoundConfig:
        raw = self._load(CONFIG_KEY)
        if raw is None:
            raise NotFound("round is not instantiated")
        return codec.config_from_json(raw)

    def save_config(self, config: RoundConfig) -> None:
        self._save(CONFIG_KEY, codec.config_to_json(config))

    # ── Phase ─────────────────────────────────────────────────────────────────

    def load_phase(self) -> Phase:
        raw = self._load(PHASE_KEY)
        return Phase.PROPOSAL_PERIOD if raw is None else codec.phase_from_json(raw)

    def save_phase(self, phase: Phase) -> None:
        self._save(PHASE_KEY, codec.phase_to_json(phase))

    # ── Sequences ─────────────────────────────────────────────────────────────

    def _next(self, key: str) -> int:
        current = self._load(key) or 0
        nxt = int(current) + 1
        self._save(key, nxt)
        return nxt

    def init_sequences(self) -> None:
        self._save(PROPOSAL_SEQ_KEY, 0)
        self._save(VOTE_SEQ_KEY, 0)

    def next_proposal_id(self) -> int:
        return self._next(PROPOSAL_SEQ_KEY)

    def next_vote_seq(self) -> int:
        return self._next(VOTE_SEQ_KEY)

    # ── Proposals ─────────────────────────────────────────────────────────────

    def load_proposal(self, proposal_id: int) -> Optional[Proposal]:
        raw = self._load(self._key(PROPOSAL_PREFIX, proposal_id))
        return None if raw is None else codec.proposal_from_json(raw)

    def save_proposal(self, proposal: Proposal) -> None:
        self._save(self._key(PROPOSAL_PREFIX, proposal.id), codec.proposal_to_json(proposal))

    def proposals(self) -> Iterator[Proposal]:
        """All proposals in ascending id order."""
        for _, raw in self.store.iterate(PROPOSAL_PREFIX):
            yield codec.proposal_from_json(codec.loads(raw))

    # ── Votes ─────────────────────────────────────────────────────────────────

    def save_vote(self, seq: int, vote: Vote) -> None:
        self._save(self._key(VOTE_PREFIX, seq), codec.vote_to_json(vote))

    def votes(self) -> Iterator[Vote]:
        """All votes in the order they were recorded."""
        for _, raw in self.store.iterate(VOTE_PREFIX):
            yield codec.vote_from_json(codec.loads(raw))

    # ── Distribution ──────────────────────────────────────────────────────────

    def load_plan(self) -> Optional[PayoutPlan]:
        raw = self._load(DISTRIBUTION_KEY)
        return None if raw is None else codec.plan_from_json(raw)

    def save_plan(self, plan: PayoutPlan) -> None:
        self._save(DISTRIBUTION_KEY, codec.plan_to_json(plan))
