"""SecretBallot: the sender-addressed entry points of one ballot deployment."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

from .events import EventLog
from .models import DecryptionConfig, Proposal, ProposalState, VotePermission
from .orchestrator import DecryptionOrchestrator
from .provider import EncryptionProvider
from .store import ProposalStore


class SecretBallot:
    """Composes the store, the decryption orchestrator and a provider.

    Every write takes the sender address explicitly, the way a ledger
    transaction carries `msg.sender`.
    """

    def __init__(
        self,
        provider: EncryptionProvider,
        contract_address: str,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[EventLog] = None,
    ):
        self.provider = provider
        self.store = ProposalStore(provider, contract_address, clock=clock, events=events)
        self.orchestrator = DecryptionOrchestrator(self.store)

    @property
    def address(self) -> str:
        return self.store.contract_address

    @property
    def events(self) -> EventLog:
        return self.store.events

    def now(self) -> int:
        return self.store.now()

    # writes

    def create_proposal(
        self,
        sender: str,
        title: str,
        description: str,
        proposal_type: Any,
        options: Sequence[str],
        start_time: int,
        end_time: int,
        permission: Any = VotePermission.PUBLIC,
        decryption_config: Optional[DecryptionConfig] = None,
    ) -> int:
        return self.store.create(
            sender,
            title,
            description,
            proposal_type,
            options,
            start_time,
            end_time,
            permission,
            decryption_config,
        )

    def vote(self, sender: str, proposal_id: int, choice_handle: str, proof: Dict[str, Any]) -> None:
        self.store.vote(proposal_id, sender, choice_handle, proof)

    def request_decryption(self, sender: str, proposal_id: int) -> int:
        return self.orchestrator.request_decryption(proposal_id, sender)

    def fulfill_decryption(self, sender: str, proposal_id: int, counts: Sequence[int]) -> List[int]:
        return self.orchestrator.fulfill_decryption(proposal_id, sender, counts)

    # reads

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self.store.get(proposal_id)

    def get_state(self, proposal_id: int) -> ProposalState:
        return self.store.state(proposal_id)

    def get_proposal_count(self) -> int:
        return self.store.count()

    def get_all_proposals(self) -> List[Proposal]:
        return self.store.list_all()

    def get_user_created_proposals(self, address: str) -> List[int]:
        return self.store.list_created_by(address)

    def get_user_voted_proposals(self, address: str) -> List[int]:
        return self.store.list_voted_by(address)

    def has_voted(self, proposal_id: int, address: str) -> bool:
        return self.store.has_voted(proposal_id, address)

    def get_encrypted_vote_count(self, proposal_id: int, option_index: int) -> str:
        return self.store.get_encrypted_vote_count(proposal_id, option_index)

    def get_results(self, proposal_id: int) -> List[int]:
        return self.orchestrator.get_results(proposal_id)
