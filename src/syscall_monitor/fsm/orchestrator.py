"""FSM orchestrator: walk the monitor's target through a cycle of operations.

Per state:
    1. epoch = events.mark()      # only events newer than this count
    2. control.apply(SetTargetOperation(state))
    3. poll events.has_observed(state, since=epoch) every poll_interval
    4. on a hit: advance (wrapping), sleep settle_interval, repeat

Step 1 happens before step 2 on purpose: an event for this operation
that was logged under an earlier state carries a sequence <= epoch and
can't be mistaken for evidence of the new one. Nothing is truncated, so
other readers of the sink lose nothing.

The unbounded wait in step 3 assumes someone will eventually perform
the operation. Passing max_polls turns it into a bounded wait that
raises DetectionTimeout after exactly that many polls.

Single-threaded and cooperative. cancel() is checked between polls, never
mid-sleep, and no lock is held while sleeping. Stopping leaves the policy
exactly as last set; the monitor is not switched back to OFF.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

from syscall_monitor.control.protocol import ControlAck, ControlRequest, SetTargetOperation
from syscall_monitor.domain.errors import DetectionTimeout
from syscall_monitor.domain.operations import OperationKind
from syscall_monitor.domain.types import SequenceNumber
from syscall_monitor.fsm.state import FsmState

log = logging.getLogger(__name__)


class Controller(Protocol):
    def apply(self, request: ControlRequest) -> ControlAck: ...


class EventSource(Protocol):
    def mark(self) -> SequenceNumber: ...

    def has_observed(
        self,
        operation: OperationKind,
        since: SequenceNumber | None = None,
        window: int = ...,
    ) -> bool: ...


class Orchestrator:
    """Drives a Controller through an FsmState, gated on an EventSource.

    Args:
        control: ControlChannel (in-process) or ControlClient (remote)
        events: EventSink (in-process) or RemoteEventView (remote)
        fsm: the state cycle; its current_index is advanced in place
        poll_interval: seconds between observation checks (default 1.0)
        settle_interval: pause after each transition (default 1.0)
        window: how many recent events each check looks at (default 20)
        sleep: injectable for tests (default time.sleep)
        report: receives each "[FSM] ..." progress line (default: log.info).
            The CLI passes print so operators see them on stdout.
    """

    def __init__(
        self,
        control: Controller,
        events: EventSource,
        fsm: FsmState,
        poll_interval: float = 1.0,
        settle_interval: float = 1.0,
        window: int = 20,
        sleep: Callable[[float], None] = time.sleep,
        report: Callable[[str], None] | None = None,
    ) -> None:
        self._control = control
        self._events = events
        self._fsm = fsm
        self._poll_interval = poll_interval
        self._settle_interval = settle_interval
        self._window = window
        self._sleep = sleep
        self._report = report if report is not None else log.info
        self._cancelled = threading.Event()
        self._transitions = 0

    @property
    def fsm(self) -> FsmState:
        return self._fsm

    @property
    def transitions(self) -> int:
        """State changes completed so far."""
        return self._transitions

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the run to stop at the next poll boundary. Thread-safe."""
        self._cancelled.set()

    def run(self, max_transitions: int | None = None) -> int:
        """Cycle until cancelled (or max_transitions reached).

        Validation and transport errors from the control side propagate
        and end the run; they are not retried. Returns transitions made.
        """
        self._report("[FSM] Starting FSM execution")
        made = 0
        while not self.cancelled:
            if max_transitions is not None and made >= max_transitions:
                break
            if self.step() is None:
                break
            made += 1
            if max_transitions is None or made < max_transitions:
                self._sleep(self._settle_interval)
        log.debug("Run ended after %d transitions", made)
        return made

    def step(self, max_polls: int | None = None) -> OperationKind | None:
        """Run one state: retarget, wait for evidence, advance.

        Returns the operation observed, or None if cancelled while waiting.
        Raises DetectionTimeout when max_polls is set and runs out.
        """
        operation = self._fsm.current
        epoch = self._events.mark()
        self._control.apply(SetTargetOperation(operation))
        self._report(
            f"[FSM] Current State: {self._fsm.current_index + 1}/{len(self._fsm)}"
            f" - Monitoring: {operation.label}"
        )
        self._report(f"[FSM] Waiting for {operation.label}() syscall...")

        if not self.wait_for_observation(operation, since=epoch, max_polls=max_polls):
            return None

        self._report(f"[FSM] Observed {operation.label}()! Transitioning to next state...")
        self._fsm.advance()
        self._transitions += 1
        return operation

    def wait_for_observation(
        self,
        operation: OperationKind,
        since: SequenceNumber | None = None,
        max_polls: int | None = None,
    ) -> bool:
        """Poll until `operation` shows up after epoch `since`.

        Each attempt sleeps poll_interval, then checks once. Returns True
        on a hit and False if cancelled. With max_polls=N, raises
        DetectionTimeout after exactly N unsuccessful attempts.
        """
        if max_polls is not None and max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        attempts = 0
        while not self.cancelled:
            self._sleep(self._poll_interval)
            attempts += 1
            if self._events.has_observed(operation, since=since, window=self._window):
                return True
            if max_polls is not None and attempts >= max_polls:
                raise DetectionTimeout(operation, attempts)
        return False
