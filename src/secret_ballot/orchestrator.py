"""Two-phase decryption of a proposal's encrypted tally.

Phase 1 (`request_decryption`) runs after voting closes. It checks timing and
authorization, grants decrypt access on the tally handles to the caller, the
creator and the authorized decrypters, then emits `DecryptionRequested`. An
off-chain relayer decrypts the handles and calls phase 2
(`fulfill_decryption`) with positional counts. Phase 2 is terminal: results
are checked against the recorded voter count and committed exactly once.

Requests may be repeated while a proposal is undecrypted. Each repeat is a
fresh delivery to the oracle; stale or duplicate fulfilments are stopped by
the phase 2 guards.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Sequence

from . import events as ev
from .errors import IntegrityMismatch, NotDecrypted
from .lifecycle import require_decrypter, require_delay_elapsed, require_ended
from .models import normalize_address
from .store import ProposalStore

logger = logging.getLogger(__name__)


def check_counts(counts: Any, option_count: int, total_voters: int) -> List[int]:
    """Validate a decrypted count vector against the option count and voter count."""
    if not isinstance(counts, (list, tuple)) or len(counts) != option_count:
        raise IntegrityMismatch("Invalid results count")
    if not all(isinstance(c, int) and not isinstance(c, bool) and c >= 0 for c in counts):
        raise IntegrityMismatch("Invalid results count")
    if sum(counts) != total_voters:
        raise IntegrityMismatch("Vote count mismatch")
    return list(counts)


class DecryptionOrchestrator:
    def __init__(self, store: ProposalStore):
        self.store = store
        self._requests: Dict[int, int] = defaultdict(int)

    def request_decryption(self, proposal_id: int, caller: str) -> int:
        """Open a decryption round; returns the round number (1-based)."""
        caller = normalize_address(caller)
        store = self.store
        with store.lock:
            proposal = store.get(proposal_id)
            now = store.now()
            require_ended(proposal, now)
            require_decrypter(proposal, caller)
            require_delay_elapsed(proposal, now)

            readers = {caller, proposal.creator} | set(proposal.decryption_config.authorized_decrypters)
            for reader in sorted(readers):
                store.grant_decryption(proposal_id, reader)
            self._requests[proposal_id] += 1
            round_no = self._requests[proposal_id]
            store.events.emit(
                ev.DECRYPTION_REQUESTED,
                proposal_id,
                now,
                requester=caller,
                request_number=round_no,
            )
        if round_no > 1:
            logger.warning("decryption for proposal %d re-requested (round %d)", proposal_id, round_no)
        else:
            logger.info("decryption requested for proposal %d by %s", proposal_id, caller)
        return round_no

    def request_count(self, proposal_id: int) -> int:
        with self.store.lock:
            self.store.get(proposal_id)
            return self._requests.get(proposal_id, 0)

    def fulfill_decryption(self, proposal_id: int, caller: str, counts: Sequence[int]) -> List[int]:
        caller = normalize_address(caller)
        store = self.store
        with store.lock:
            proposal = store.get(proposal_id)
            now = store.now()
            require_ended(proposal, now)
            require_decrypter(proposal, caller)
            try:
                results = check_counts(counts, len(proposal.options), proposal.total_voters)
            except IntegrityMismatch:
                logger.warning("rejected results for proposal %d from %s", proposal_id, caller)
                raise
            store.commit_results(proposal_id, results)
            store.events.emit(ev.DECRYPTION_FULFILLED, proposal_id, now, fulfiller=caller)
        logger.info("proposal %d decrypted: %s", proposal_id, results)
        return results

    def get_results(self, proposal_id: int) -> List[int]:
        proposal = self.store.get(proposal_id)
        if not proposal.decrypted:
            raise NotDecrypted("Results not decrypted yet")
        return list(proposal.results)
