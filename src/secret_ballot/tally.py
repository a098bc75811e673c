"""Encrypted per-option accumulators and the per-proposal voter set."""

from __future__ import annotations

from typing import Iterator, List, Sequence

from .errors import AlreadyVoted
from .provider import EncryptionProvider


class EncryptedTally:
    """Builds and advances the handle vector of one proposal.

    Methods return new handle lists and never touch the stored proposal, so
    the store can compute a full update before committing any of it.
    """

    def __init__(self, provider: EncryptionProvider, contract_address: str):
        self.provider = provider
        self.contract_address = contract_address

    def zero(self, option_count: int) -> List[str]:
        return [self.provider.encrypted_zero(self.contract_address) for _ in range(option_count)]

    def increment(self, handles: Sequence[str], ballot_handle: str) -> List[str]:
        # every slot gets the same homomorphic add; the ballot's slot bit decides
        return [
            self.provider.homomorphic_add(handle, ballot_handle, idx)
            for idx, handle in enumerate(handles)
        ]


class VoterRegistry:
    """Addresses that have voted on one proposal, in admission order."""

    def __init__(self):
        self._order: List[str] = []
        self._members = set()

    def __contains__(self, address: str) -> bool:
        return address in self._members

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def require_absent(self, address: str) -> None:
        if address in self._members:
            raise AlreadyVoted("Already voted")

    def add(self, address: str) -> None:
        self.require_absent(address)
        self._members.add(address)
        self._order.append(address)
