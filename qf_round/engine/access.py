"""
qf_round/engine/access.py: Whitelist checks.

An absent whitelist (None) means permissionless mode. An empty list admits
nobody. Callers turn a False result into errors.Unauthorized.
"""

from typing import Optional, Sequence


def _admits(whitelist: Optional[Sequence[str]], address: str) -> bool:
    if whitelist is None:
        return True
    return address in whitelist


def can_create_proposal(whitelist: Optional[Sequence[str]], address: str) -> bool:
    return _admits(whitelist, address)


def can_vote(whitelist: Optional[Sequence[str]], address: str) -> bool:
    return _admits(whitelist, address)


def is_admin(admin: str, address: str) -> bool:
    return admin == address
