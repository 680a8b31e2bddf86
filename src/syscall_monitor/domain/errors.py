"""Exception taxonomy.

    MonitorError
    ├── ChannelError           control-plane failures, surfaced to the operator
    │   ├── ValidationError    bad mode/operation/request/config, never applied
    │   │   └── FsmConfigError
    │   └── TransportError     control channel unreachable or broken
    └── DetectionTimeout       bounded observation wait ran out of polls

Nothing here is raised on the interception hot path. Hooks fail open.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from syscall_monitor.domain.operations import OperationKind


class MonitorError(Exception):
    """Base class for every error this package raises on purpose."""


class ChannelError(MonitorError):
    """A control request could not be applied."""


class ValidationError(ChannelError, ValueError):
    """Value outside its enumeration, or a malformed request/config."""


class FsmConfigError(ValidationError):
    """FSM state sequence could not be loaded. No machine was built."""


class TransportError(ChannelError, ConnectionError):
    """The control channel could not reach the monitor."""


class DetectionTimeout(MonitorError, TimeoutError):
    """Bounded polling gave up before observing the target operation."""

    def __init__(self, operation: OperationKind, attempts: int) -> None:
        super().__init__(
            f"No {operation.label}() observed after {attempts} polls"
        )
        self.operation = operation
        self.attempts = attempts
