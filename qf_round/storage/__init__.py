"""
qf_round.storage: Ledger persistence layer.

Modules:
    kv      KeyValueStore interface (read / write / iterate) and MemoryStore.
    staged  StagedStore: in-memory write buffer committed at the end of a
            successful invocation, discarded on failure.
    ledger  LedgerStore: typed accessors for Config, phase, Proposals, Votes
            and the committed payout plan.

The host owns the underlying store; the engine is its only writer within one
invocation and never writes to it except through StagedStore.commit().
"""

from qf_round.storage.kv import KeyValueStore, MemoryStore
from qf_round.storage.ledger import LedgerStore
from qf_round.storage.staged import StagedStore, staged
