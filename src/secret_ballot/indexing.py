"""Reverse indexes from addresses to proposal ids."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List


class AddressIndex:
    """Append-only mapping address -> [proposal id] preserving insertion order."""

    def __init__(self):
        self._ids: Dict[str, List[int]] = defaultdict(list)

    def add(self, address: str, proposal_id: int) -> None:
        self._ids[address].append(proposal_id)

    def get(self, address: str) -> List[int]:
        return list(self._ids.get(address, ()))


class ProposalIndexes:
    """Proposals created by an address and proposals voted on by an address."""

    def __init__(self):
        self.created = AddressIndex()
        self.voted = AddressIndex()

    def record_created(self, creator: str, proposal_id: int) -> None:
        self.created.add(creator, proposal_id)

    def record_vote(self, voter: str, proposal_id: int) -> None:
        self.voted.add(voter, proposal_id)
