"""Proposal records and the enums that describe them."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .errors import InvalidInput

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class ProposalType(IntEnum):
    SINGLE_CHOICE = 0
    MULTIPLE_CHOICE = 1


class VotePermission(IntEnum):
    PUBLIC = 0
    WHITELIST = 1


class DecryptionMode(IntEnum):
    AUTOMATIC = 0
    MANUAL = 1


class ProposalState(IntEnum):
    NOT_STARTED = 0
    ACTIVE = 1
    ENDED = 2
    DECRYPTED = 3


def normalize_address(value: Any) -> str:
    """Return `value` as a lower-case 0x address or raise InvalidInput."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value.strip()):
        raise InvalidInput(f"Invalid address: {value!r}")
    return value.strip().lower()


@dataclass(frozen=True)
class DecryptionConfig:
    """Who may decrypt and how long after the end time.

    Attributes
    - mode: AUTOMATIC lets any caller trigger decryption, MANUAL restricts it
      to the creator and `authorized_decrypters`
    - authorized_decrypters: normalized addresses
    - delay_seconds: wait after `end_time` before a request is legal
    """

    mode: DecryptionMode = DecryptionMode.MANUAL
    authorized_decrypters: FrozenSet[str] = frozenset()
    delay_seconds: int = 0

    def __post_init__(self):
        mode = self.mode
        if isinstance(mode, bool):
            raise InvalidInput("Invalid decryption mode")
        try:
            if isinstance(mode, str) and not mode.isdigit():
                mode = DecryptionMode[mode.upper()]
            else:
                mode = DecryptionMode(int(mode))
        except (KeyError, TypeError, ValueError):
            raise InvalidInput("Invalid decryption mode") from None
        delay = self.delay_seconds
        if isinstance(delay, bool) or not isinstance(delay, int) or delay < 0:
            raise InvalidInput("Invalid decryption delay")
        decrypters = self.authorized_decrypters
        if isinstance(decrypters, str):
            decrypters = (decrypters,)
        try:
            decrypters = frozenset(normalize_address(a) for a in decrypters)
        except TypeError:
            raise InvalidInput("Invalid authorized decrypters") from None
        # frozen: normalized values are written through object.__setattr__
        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "authorized_decrypters", decrypters)

    @classmethod
    def build(
        cls,
        mode: Any = DecryptionMode.MANUAL,
        authorized_decrypters: Iterable[str] = (),
        delay_seconds: Any = 0,
    ) -> "DecryptionConfig":
        return cls(mode=mode, authorized_decrypters=authorized_decrypters, delay_seconds=delay_seconds)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DecryptionConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise InvalidInput("Invalid decryption config")
        return cls.build(
            mode=data.get("mode", DecryptionMode.MANUAL),
            authorized_decrypters=data.get("authorized_decrypters") or (),
            delay_seconds=data.get("delay_seconds", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.name,
            "authorized_decrypters": sorted(self.authorized_decrypters),
            "delay_seconds": self.delay_seconds,
        }


@dataclass
class Proposal:
    """A ballot question and its encrypted tally.

    `encrypted_tally[i]` and `results[i]` are aligned with `options[i]`.
    `results` stays None until `decrypted` flips to True.
    """

    id: int
    creator: str
    title: str
    description: str
    proposal_type: ProposalType
    options: List[str]
    start_time: int
    end_time: int
    permission: VotePermission
    decryption_config: DecryptionConfig
    encrypted_tally: List[str]
    created_at: int = 0
    total_voters: int = 0
    decrypted: bool = False
    results: Optional[List[int]] = None

    def snapshot(self) -> "Proposal":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "creator": self.creator,
            "title": self.title,
            "description": self.description,
            "proposal_type": self.proposal_type.name,
            "options": list(self.options),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "permission": self.permission.name,
            "decryption_config": self.decryption_config.to_dict(),
            "created_at": self.created_at,
            "total_voters": self.total_voters,
            "decrypted": self.decrypted,
            "results": list(self.results) if self.results is not None else None,
        }
