"""Append-only, best-effort event sink on a bounded collections.deque.

Same trick as an append-optimized audit log: deque.append() is a short C
routine under the GIL, so many hook contexts can append concurrently
without a Python-level lock and no event's fields ever interleave (each
event is one immutable object appended by reference).

The deque has a maxlen. Once it is full, every append silently evicts
the oldest event. A slow poller can therefore miss an event entirely;
that loss is the accepted cost of a sink that never blocks a writer.

Sequence numbers come from itertools.count(). next() on it is a single
C call, so two concurrent appends never draw the same number. Ordering
by sequence reflects the order numbers were drawn, which is close to,
but not guaranteed to be, real-time order across callers.

Consumers never subscribe. They poll find_recent() over a tail window,
optionally restricted to events newer than an observation epoch taken
with mark().
"""
from __future__ import annotations

import itertools
from collections import deque
from dataclasses import replace
from typing import Callable

from syscall_monitor.domain.decisions import EventOutcome
from syscall_monitor.domain.events import InterceptionEvent
from syscall_monitor.domain.operations import OperationKind
from syscall_monitor.domain.types import NO_EPOCH, ProcessId, SequenceNumber

EventPredicate = Callable[[InterceptionEvent], bool]


class EventSink:
    """Bounded in-memory log of InterceptionEvents.

    Args:
        capacity: maximum events kept visible (default 1024).
    """

    def __init__(self, capacity: int = 1024) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._events: deque[InterceptionEvent] = deque(maxlen=capacity)
        self._counter = itertools.count()
        self._floor: SequenceNumber = NO_EPOCH  # highest sequence dropped by clear()

    def append(self, event: InterceptionEvent) -> InterceptionEvent:
        """Stamp the event with the next sequence number and store it.

        Hot path: no lock. Returns the stored (sequenced) event.
        """
        stored = replace(event, sequence=next(self._counter))
        self._events.append(stored)
        return stored

    def record(
        self,
        operation: OperationKind,
        process_id: ProcessId,
        outcome: EventOutcome,
    ) -> InterceptionEvent:
        """Build and append an event in one call."""
        return self.append(InterceptionEvent(operation, process_id, outcome))

    def tail(self, window: int | None = None) -> list[InterceptionEvent]:
        """The newest `window` events, oldest first (all events if None)."""
        events = self._snapshot()
        if window is not None:
            events = events[-window:] if window > 0 else []
        return events

    def find_recent(
        self,
        predicate: EventPredicate,
        window: int,
        since: SequenceNumber | None = None,
    ) -> bool:
        """Best-effort search of the newest `window` events.

        If `since` is given, only events with sequence > since count. This
        is the observation-epoch filter: nothing is truncated, so other
        consumers still see the older events.
        """
        for event in reversed(self.tail(window)):
            if since is not None and event.sequence <= since:
                # concurrent appends can land out of sequence order, so no early break
                continue
            if predicate(event):
                return True
        return False

    def has_observed(
        self,
        operation: OperationKind,
        since: SequenceNumber | None = None,
        window: int = 20,
    ) -> bool:
        """find_recent() for an OBSERVED event of `operation`."""
        return self.find_recent(
            lambda e: e.is_observation_of(operation), window=window, since=since
        )

    def mark(self) -> SequenceNumber:
        """Current observation epoch: the highest sequence appended so far."""
        events = self._snapshot()
        if not events:
            return self._floor
        return max(self._floor, max(e.sequence for e in events))

    def clear(self) -> None:
        """Drop all visible events. Epochs taken earlier stay valid."""
        self._floor = self.mark()
        self._events.clear()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def total_appended(self) -> int:
        """Events ever appended, including evicted and cleared ones."""
        return self.mark() + 1

    def __len__(self) -> int:
        return len(self._events)

    def _snapshot(self) -> list[InterceptionEvent]:
        """Copy the deque, retrying if an append races the copy."""
        while True:
            try:
                return list(self._events)
            except RuntimeError:
                # "deque mutated during iteration"
                continue
