"""Oracle/relayer for the off-chain half of decryption.

The relayer watches `DecryptionRequested` events, fetches each option's tally
handle, signs a time-bounded authorization for a fresh ephemeral key, asks the
provider to decrypt the batch and submits the counts back through
`fulfill_decryption`.

The provider answers with a mapping keyed by handle in no particular order;
positional order is rebuilt from an explicit handle -> option index table.
Delivery is at-least-once: failed proposals stay pending and are retried on
the next `process_pending` call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Set

from . import events as ev
from .authorization import Signer, create_authorization, generate_keypair
from .contract import SecretBallot
from .errors import AlreadyDecrypted, BallotError, IntegrityMismatch
from .orchestrator import check_counts
from .provider import EncryptionProvider

logger = logging.getLogger(__name__)


def order_by_handle(handle_map: Dict[str, int], decrypted: Dict[str, int], option_count: int) -> List[int]:
    """Turn a handle-keyed decrypt result into counts aligned with the options."""
    counts: List[Any] = [None] * option_count
    for handle, value in decrypted.items():
        idx = handle_map.get(handle)
        if idx is None:
            logger.debug("ignoring unrequested handle %s", handle[:10])
            continue
        counts[idx] = value
    missing = [i for i, c in enumerate(counts) if c is None]
    if missing:
        raise IntegrityMismatch(f"Missing decrypted value for option {missing[0]}")
    return counts


class DecryptionRelayer:
    def __init__(
        self,
        ballot: SecretBallot,
        provider: EncryptionProvider,
        signer: Signer,
        duration_days: int = 7,
    ):
        self.ballot = ballot
        self.provider = provider
        self.signer = signer
        self.duration_days = duration_days
        self._cursor = 0
        self._pending: Set[int] = set()

    @property
    def address(self) -> str:
        return self.signer.address

    def decrypt_proposal(self, proposal_id: int) -> List[int]:
        """Decrypt one proposal's tally and commit it; returns the results."""
        proposal = self.ballot.get_proposal(proposal_id)
        if proposal.decrypted:
            return list(proposal.results)

        handle_map: Dict[str, int] = {}
        for idx in range(len(proposal.options)):
            handle = self.ballot.get_encrypted_vote_count(proposal_id, idx)
            handle_map[handle] = idx
            logger.debug("proposal %d option %d handle %s", proposal_id, idx, handle[:10])

        _, ephemeral_public = generate_keypair()
        authorization = create_authorization(
            self.signer,
            ephemeral_public,
            [self.ballot.address],
            self.ballot.now(),
            self.duration_days,
        )
        decrypted = self.provider.decrypt_batch(list(handle_map), authorization)
        counts = order_by_handle(handle_map, decrypted, len(proposal.options))
        check_counts(counts, len(proposal.options), proposal.total_voters)

        try:
            return self.ballot.fulfill_decryption(self.signer.address, proposal_id, counts)
        except AlreadyDecrypted:
            logger.info("proposal %d was fulfilled by another round", proposal_id)
            return self.ballot.get_results(proposal_id)

    def process_pending(self) -> Dict[int, Any]:
        """Handle every request seen since the last call plus earlier failures.

        Returns proposal id -> results list, or the error message for
        proposals that failed this round.
        """
        for event in self.ballot.events.since(self._cursor):
            if event.name == ev.DECRYPTION_REQUESTED:
                self._pending.add(event.proposal_id)
            self._cursor = event.index + 1

        outcome: Dict[int, Any] = {}
        for proposal_id in sorted(self._pending):
            try:
                outcome[proposal_id] = self.decrypt_proposal(proposal_id)
            except BallotError as exc:
                logger.warning("relay for proposal %d failed: %s", proposal_id, exc.message)
                outcome[proposal_id] = {"error": exc.message, "code": exc.code}
                continue
            self._pending.discard(proposal_id)
        return outcome
