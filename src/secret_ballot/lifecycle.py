"""Proposal lifecycle: creation-time validation and the derived state machine.

State is never stored. It is recomputed from the clock and the proposal's
`start_time`, `end_time` and `decrypted` flag on every query:

    NOT_STARTED -> ACTIVE -> ENDED -> DECRYPTED

`ACTIVE` includes both bounds (start_time <= now <= end_time).
"""

from __future__ import annotations

from typing import Any

from .errors import AlreadyDecrypted, InvalidInput, NotActive, NotEnded, Unauthorized
from .models import DecryptionMode, Proposal, ProposalState, ProposalType, VotePermission

MAX_TITLE_LEN = 100
MAX_DESCRIPTION_LEN = 1000
MIN_OPTIONS = 2
MAX_OPTIONS = 10
MAX_OPTION_LEN = 50


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _text_len_ok(value: Any, max_len: int) -> bool:
    return isinstance(value, str) and 1 <= len(value) <= max_len


def validate_proposal(
    title: Any,
    description: Any,
    proposal_type: Any,
    options: Any,
    start_time: Any,
    end_time: Any,
    permission: Any,
) -> None:
    """Raise InvalidInput for the first violated creation rule."""
    if not _text_len_ok(title, MAX_TITLE_LEN):
        raise InvalidInput("Invalid title length")
    if not _text_len_ok(description, MAX_DESCRIPTION_LEN):
        raise InvalidInput("Invalid description length")
    if not isinstance(options, (list, tuple)) or not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise InvalidInput("Invalid options count")
    if not all(_text_len_ok(opt, MAX_OPTION_LEN) for opt in options):
        raise InvalidInput("Invalid option length")
    if len(set(options)) != len(options):
        raise InvalidInput("Duplicate option")
    if not (_is_int(start_time) and _is_int(end_time)):
        raise InvalidInput("Invalid timestamps")
    if end_time <= start_time:
        raise InvalidInput("End time must be after start time")
    if not isinstance(proposal_type, ProposalType) or proposal_type != ProposalType.SINGLE_CHOICE:
        raise InvalidInput("Unsupported proposal type")
    if not isinstance(permission, VotePermission) or permission != VotePermission.PUBLIC:
        raise InvalidInput("Unsupported permission")


def derive_state(proposal: Proposal, now: int) -> ProposalState:
    if proposal.decrypted:
        return ProposalState.DECRYPTED
    if now < proposal.start_time:
        return ProposalState.NOT_STARTED
    if now <= proposal.end_time:
        return ProposalState.ACTIVE
    return ProposalState.ENDED


def require_active(proposal: Proposal, now: int) -> None:
    state = derive_state(proposal, now)
    if state == ProposalState.NOT_STARTED:
        raise NotActive("Proposal not started")
    if state != ProposalState.ACTIVE:
        raise NotActive("Proposal has ended")


def require_not_decrypted(proposal: Proposal) -> None:
    if proposal.decrypted:
        raise AlreadyDecrypted("Already decrypted")


def require_ended(proposal: Proposal, now: int) -> None:
    require_not_decrypted(proposal)
    if derive_state(proposal, now) != ProposalState.ENDED:
        raise NotEnded("Proposal still active")


def require_delay_elapsed(proposal: Proposal, now: int) -> None:
    if now < proposal.end_time + proposal.decryption_config.delay_seconds:
        raise NotEnded("Decryption delay not elapsed")


def can_decrypt(proposal: Proposal, caller: str) -> bool:
    config = proposal.decryption_config
    if config.mode == DecryptionMode.AUTOMATIC:
        return True
    return caller == proposal.creator or caller in config.authorized_decrypters


def require_decrypter(proposal: Proposal, caller: str) -> None:
    if not can_decrypt(proposal, caller):
        raise Unauthorized("Not authorized to decrypt")

