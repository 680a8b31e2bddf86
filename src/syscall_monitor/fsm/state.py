"""FsmState: a fixed cycle of operations and a cursor that wraps."""
from __future__ import annotations

from dataclasses import dataclass

from syscall_monitor.domain.errors import FsmConfigError
from syscall_monitor.domain.operations import OperationKind


@dataclass(slots=True)
class FsmState:
    """Ordered, non-empty cycle of OperationKinds.

    current_index only moves forward, one step per observed operation,
    and wraps back to 0 after the last state. There is no terminal state.
    """
    states: tuple[OperationKind, ...]
    current_index: int = 0

    def __post_init__(self) -> None:
        self.states = tuple(self.states)
        if not self.states:
            raise FsmConfigError("FSM must have at least one state")
        if not 0 <= self.current_index < len(self.states):
            raise FsmConfigError(
                f"current_index {self.current_index} out of range for "
                f"{len(self.states)} states"
            )

    @property
    def current(self) -> OperationKind:
        return self.states[self.current_index]

    def advance(self) -> OperationKind:
        """Move to the next state (wrapping) and return it."""
        self.current_index = (self.current_index + 1) % len(self.states)
        return self.current

    def describe(self) -> str:
        """e.g. "open -> read -> write (loops back)"."""
        return " -> ".join(op.label for op in self.states) + " (loops back)"

    def __len__(self) -> int:
        return len(self.states)
