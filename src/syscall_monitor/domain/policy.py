"""PolicySnapshot: the (mode, target operation, process filter) triple.

Immutable on purpose. The Policy Store publishes a new snapshot for every
change, so a hook that grabbed one never sees half of an update.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.types import ANY_PROCESS, ProcessId


@dataclass(frozen=True, slots=True)
class PolicySnapshot:
    mode: EnforcementMode = EnforcementMode.OFF
    target_operation: OperationKind = OperationKind.OPEN
    process_filter: ProcessId = ANY_PROCESS

    def matches_process(self, pid: ProcessId) -> bool:
        """True when the filter is "any" or names exactly this caller."""
        return self.process_filter == ANY_PROCESS or self.process_filter == pid

    def with_changes(self, **changes: Any) -> PolicySnapshot:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.name,
            "target_operation": self.target_operation.label,
            "process_filter": self.process_filter,
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> PolicySnapshot:
        return cls(
            mode=EnforcementMode.coerce(obj["mode"]),
            target_operation=OperationKind.coerce(obj["target_operation"]),
            process_filter=int(obj["process_filter"]),
        )
