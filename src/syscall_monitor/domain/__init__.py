"""Domain model for syscall-monitor.

Re-exports all public types for convenient access:
    from syscall_monitor.domain import OperationKind, EnforcementMode, PolicySnapshot
"""
from syscall_monitor.domain.decisions import Decision, EventOutcome
from syscall_monitor.domain.errors import (
    ChannelError,
    DetectionTimeout,
    FsmConfigError,
    MonitorError,
    TransportError,
    ValidationError,
)
from syscall_monitor.domain.events import LOG_MARKER, InterceptionEvent
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.policy import PolicySnapshot
from syscall_monitor.domain.types import (
    ANY_PROCESS,
    NO_EPOCH,
    ProcessId,
    SequenceNumber,
    Timestamp,
)

__all__ = [
    "Decision",
    "EventOutcome",
    "ChannelError",
    "DetectionTimeout",
    "FsmConfigError",
    "MonitorError",
    "TransportError",
    "ValidationError",
    "LOG_MARKER",
    "InterceptionEvent",
    "EnforcementMode",
    "OperationKind",
    "PolicySnapshot",
    "ANY_PROCESS",
    "NO_EPOCH",
    "ProcessId",
    "SequenceNumber",
    "Timestamp",
]
