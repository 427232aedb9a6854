# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

from .events import ChangeEvent


class EventBuffer:
    """
    Ordered queue of change events awaiting a flush.

    Parameters
    ----------
    overflow_threshold:
        If set, the buffer is trimmed to the ``overflow_keep`` most recent events
        whenever its length exceeds this threshold.
    overflow_keep:
        Number of events kept when trimming.
    """

    def __init__(
        self, *, overflow_threshold: int | None = None, overflow_keep: int = 0
    ) -> None:
        self._events: list[ChangeEvent] = []
        self._overflow_threshold = overflow_threshold
        self._overflow_keep = overflow_keep
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._events)

    def push(self, event: ChangeEvent) -> None:
        self._events.append(event)
        if (
            self._overflow_threshold is not None
            and len(self._events) > self._overflow_threshold
        ):
            excess = len(self._events) - self._overflow_keep
            self.dropped += excess
            self._events = self._events[excess:]

    def drain(self) -> list[ChangeEvent]:
        """Remove and return all events in arrival order."""
        events = self._events
        self._events = []
        return events

    def clear(self) -> int:
        """Discard all events and return how many were discarded."""
        count = len(self._events)
        self._events = []
        return count
