"""InterceptionEvent: immutable record of one logged or denied operation.

Appended to the Event Sink, never mutated. Consumers look at a tail
window of recent events, never at an index.
"""
from __future__ import annotations

import time as time_module
from dataclasses import dataclass, field

from syscall_monitor.domain.decisions import EventOutcome
from syscall_monitor.domain.operations import OperationKind
from syscall_monitor.domain.types import ProcessId, SequenceNumber, Timestamp

# Marker token the orchestrator and operators grep for.
LOG_MARKER = "SYSCALL_MONITOR"


@dataclass(frozen=True, slots=True)
class InterceptionEvent:
    """One intercept outcome.

    sequence is assigned by the sink on append; it is the coordinate used
    for observation epochs. Events built by hand default to -1.
    """
    operation: OperationKind
    process_id: ProcessId
    outcome: EventOutcome
    sequence: SequenceNumber = -1
    timestamp: Timestamp = field(default_factory=time_module.time)

    def format_line(self) -> str:
        """Human-readable line, stable enough to match by operation name."""
        if self.outcome is EventOutcome.DENIED:
            return (
                f"{LOG_MARKER}: Blocking {self.operation.label}() "
                f"for PID={self.process_id}"
            )
        return f"{LOG_MARKER}: PID={self.process_id} called {self.operation.label}()"

    def is_observation_of(self, operation: OperationKind) -> bool:
        """Evidence that `operation` happened (logged, not denied)."""
        return (
            self.operation is operation
            and self.outcome is EventOutcome.OBSERVED
        )
