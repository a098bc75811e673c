"""Append-only log of observable ballot events."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PROPOSAL_CREATED = "ProposalCreated"
VOTE_CAST = "VoteCast"
DECRYPTION_REQUESTED = "DecryptionRequested"
DECRYPTION_FULFILLED = "DecryptionFulfilled"


@dataclass(frozen=True)
class Event:
    index: int
    name: str
    proposal_id: int
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "proposal_id": self.proposal_id,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


class EventLog:
    """Events in emission order; readers poll with a cursor."""

    def __init__(self):
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def emit(self, name: str, proposal_id: int, timestamp: int, **data: Any) -> Event:
        with self._lock:
            event = Event(len(self._events), name, proposal_id, timestamp, data)
            self._events.append(event)
        return event

    def since(self, cursor: int = 0, name: Optional[str] = None) -> List[Event]:
        with self._lock:
            events = self._events[max(cursor, 0):]
        if name is not None:
            events = [e for e in events if e.name == name]
        return events

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
