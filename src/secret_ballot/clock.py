"""Clocks returning integer Unix seconds."""

from __future__ import annotations

import time


def system_clock() -> int:
    return int(time.time())


class ManualClock:
    """A clock that only moves when told to; used by the demo and tests."""

    def __init__(self, start: int = 1_700_000_000):
        self.value = int(start)

    def __call__(self) -> int:
        return self.value

    def advance(self, seconds: int) -> int:
        self.value += int(seconds)
        return self.value

    def set(self, value: int) -> None:
        self.value = int(value)
