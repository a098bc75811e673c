"""ProposalStore: the single owner and writer of proposal state.

All mutating calls run under one re-entrant lock, so each create, vote and
decryption transition is atomic with respect to every other. Readers get
deep-copied snapshots and never observe a half-applied update.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import events as ev
from .clock import system_clock
from .errors import InvalidInput, InvalidProof, NotFound
from .indexing import ProposalIndexes
from .lifecycle import derive_state, require_active, validate_proposal
from .models import (
    DecryptionConfig,
    Proposal,
    ProposalState,
    ProposalType,
    VotePermission,
    normalize_address,
)
from .provider import EncryptionProvider
from .tally import EncryptedTally, VoterRegistry

logger = logging.getLogger(__name__)


def _coerce_enum(enum_cls, value: Any):
    """Map ints and member names onto `enum_cls`; None for anything else."""
    try:
        if isinstance(value, str):
            return enum_cls(int(value)) if value.isdigit() else enum_cls[value.upper()]
        if isinstance(value, int) and not isinstance(value, bool):
            return enum_cls(value)
    except (KeyError, ValueError):
        pass
    return None


class ProposalStore:
    def __init__(
        self,
        provider: EncryptionProvider,
        contract_address: str,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[ev.EventLog] = None,
    ):
        self.provider = provider
        self.contract_address = normalize_address(contract_address)
        self.clock = clock or system_clock
        self.events = events if events is not None else ev.EventLog()
        self.lock = threading.RLock()
        self._tally = EncryptedTally(provider, self.contract_address)
        self._proposals: List[Proposal] = []
        self._registries: Dict[int, VoterRegistry] = {}
        self._indexes = ProposalIndexes()

    def now(self) -> int:
        return int(self.clock())

    def _live(self, proposal_id: Any) -> Proposal:
        if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
            raise NotFound("Proposal does not exist")
        if not 0 <= proposal_id < len(self._proposals):
            raise NotFound("Proposal does not exist")
        return self._proposals[proposal_id]

    # writes

    def create(
        self,
        creator: str,
        title: str,
        description: str,
        proposal_type: Any,
        options: Sequence[str],
        start_time: int,
        end_time: int,
        permission: Any = VotePermission.PUBLIC,
        decryption_config: Optional[DecryptionConfig] = None,
    ) -> int:
        """Validate and store a new proposal, returning its sequential id."""
        creator = normalize_address(creator)
        proposal_type = _coerce_enum(ProposalType, proposal_type)
        permission = _coerce_enum(VotePermission, permission)
        validate_proposal(title, description, proposal_type, options, start_time, end_time, permission)
        if decryption_config is None:
            decryption_config = DecryptionConfig()
        if not isinstance(decryption_config, DecryptionConfig):
            raise InvalidInput("Invalid decryption config")

        with self.lock:
            now = self.now()
            tally = self._tally.zero(len(options))
            proposal_id = len(self._proposals)
            proposal = Proposal(
                id=proposal_id,
                creator=creator,
                title=title,
                description=description,
                proposal_type=proposal_type,
                options=list(options),
                start_time=start_time,
                end_time=end_time,
                permission=permission,
                decryption_config=decryption_config,
                encrypted_tally=tally,
                created_at=now,
            )
            self._proposals.append(proposal)
            self._registries[proposal_id] = VoterRegistry()
            self._indexes.record_created(creator, proposal_id)
            self.events.emit(
                ev.PROPOSAL_CREATED,
                proposal_id,
                now,
                creator=creator,
                title=title,
                start_time=start_time,
                end_time=end_time,
                option_count=len(options),
            )
        logger.info("proposal %d created by %s with %d options", proposal_id, creator, len(options))
        return proposal_id

    def vote(self, proposal_id: int, voter: str, choice_handle: str, proof: Any) -> None:
        """Fold one encrypted ballot into the tally, at most once per voter."""
        voter = normalize_address(voter)
        with self.lock:
            proposal = self._live(proposal_id)
            now = self.now()
            require_active(proposal, now)
            # only PUBLIC proposals can exist, see validate_proposal
            registry = self._registries[proposal_id]
            registry.require_absent(voter)
            if not self.provider.verify_proof(
                choice_handle,
                proof,
                self.contract_address,
                voter,
                option_count=len(proposal.options),
            ):
                logger.warning("rejected ballot proof from %s on proposal %d", voter, proposal_id)
                raise InvalidProof("Invalid encrypted vote")
            new_tally = self._tally.increment(proposal.encrypted_tally, choice_handle)

            proposal.encrypted_tally = new_tally
            registry.add(voter)
            proposal.total_voters += 1
            self._indexes.record_vote(voter, proposal_id)
            self.events.emit(ev.VOTE_CAST, proposal_id, now, voter=voter)
        logger.info("vote recorded on proposal %d (total %d)", proposal_id, proposal.total_voters)

    def grant_decryption(self, proposal_id: int, address: str) -> None:
        """Let `address` decrypt the current tally handles of a proposal."""
        with self.lock:
            proposal = self._live(proposal_id)
            for handle in proposal.encrypted_tally:
                self.provider.allow(handle, address)

    def commit_results(self, proposal_id: int, counts: Sequence[int]) -> None:
        with self.lock:
            proposal = self._live(proposal_id)
            proposal.results = list(counts)
            proposal.decrypted = True

    # reads

    def get(self, proposal_id: int) -> Proposal:
        with self.lock:
            return self._live(proposal_id).snapshot()

    def state(self, proposal_id: int) -> ProposalState:
        with self.lock:
            return derive_state(self._live(proposal_id), self.now())

    def count(self) -> int:
        with self.lock:
            return len(self._proposals)

    def list_all(self) -> List[Proposal]:
        with self.lock:
            return [p.snapshot() for p in self._proposals]

    def list_created_by(self, address: str) -> List[int]:
        with self.lock:
            return self._indexes.created.get(normalize_address(address))

    def list_voted_by(self, address: str) -> List[int]:
        with self.lock:
            return self._indexes.voted.get(normalize_address(address))

    def has_voted(self, proposal_id: int, address: str) -> bool:
        with self.lock:
            self._live(proposal_id)
            return normalize_address(address) in self._registries[proposal_id]

    def get_encrypted_vote_count(self, proposal_id: int, option_index: int) -> str:
        with self.lock:
            proposal = self._live(proposal_id)
            if isinstance(option_index, bool) or not isinstance(option_index, int):
                raise InvalidInput("Invalid option index")
            if not 0 <= option_index < len(proposal.options):
                raise InvalidInput("Invalid option index")
            return proposal.encrypted_tally[option_index]
