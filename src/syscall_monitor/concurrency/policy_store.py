"""Process-wide policy store with lock-free reads.

Consistency level: copy-on-write snapshot. The whole (mode, target
operation, process filter) triple lives in one frozen PolicySnapshot.
A writer builds a new snapshot and publishes it with a single attribute
assignment, which CPython performs atomically. Readers (the interception
hooks, on every open/read/write) do one attribute load and never touch
a lock, so a slow or stuck writer cannot stall them. Any snapshot a reader
gets was the complete state at some instant: cross-field atomic, not just
per-field.

Writers serialize among themselves with a plain Lock so two concurrent
set_* calls cannot both start from the same old snapshot and lose one
update. The lock is held only for the replace-and-publish step.

Mutators are fail-soft: an out-of-range value is ignored (prior state
kept) and reported by returning False. Loud validation happens at the
Control Channel boundary, before anything reaches this class.
"""
from __future__ import annotations

import logging
import threading

from syscall_monitor.domain.errors import ValidationError
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.policy import PolicySnapshot
from syscall_monitor.domain.types import ProcessId

log = logging.getLogger(__name__)


class PolicyStore:
    """Holds the active PolicySnapshot.

    Args:
        initial: starting snapshot (default OFF / OPEN / any process).
    """

    def __init__(self, initial: PolicySnapshot | None = None) -> None:
        self._snapshot = initial or PolicySnapshot()
        self._write_lock = threading.Lock()

    def get_snapshot(self) -> PolicySnapshot:
        """Current policy. Wait-free: a single attribute read."""
        return self._snapshot

    def set_mode(self, mode: EnforcementMode | int) -> bool:
        """Switch the enforcement mode. Returns False if mode was ignored."""
        try:
            value = EnforcementMode.coerce(mode)
        except ValidationError:
            log.debug("Ignoring out-of-range mode %r", mode)
            return False
        self._publish(mode=value)
        log.info("Mode changed to %s", value.name)
        return True

    def set_target_operation(self, operation: OperationKind | int) -> bool:
        """Switch the monitored operation. Returns False if it was ignored."""
        try:
            value = OperationKind.coerce(operation)
        except ValidationError:
            log.debug("Ignoring out-of-range target operation %r", operation)
            return False
        self._publish(target_operation=value)
        log.info("Target syscall changed to %s", value.label)
        return True

    def set_target_process(self, pid: ProcessId) -> bool:
        """Narrow enforcement to one pid; -1 (ANY_PROCESS) matches every caller.

        Any signed integer is accepted. Non-integers are ignored.
        """
        if not isinstance(pid, int) or isinstance(pid, bool):
            log.debug("Ignoring non-integer target pid %r", pid)
            return False
        self._publish(process_filter=pid)
        log.info("Target PID changed to %d", pid)
        return True

    def replace(self, snapshot: PolicySnapshot) -> None:
        """Publish a whole snapshot in one step."""
        with self._write_lock:
            self._snapshot = snapshot

    def reset(self) -> None:
        """Back to defaults: OFF, OPEN, any process."""
        self.replace(PolicySnapshot())

    def _publish(self, **changes) -> None:
        with self._write_lock:
            self._snapshot = self._snapshot.with_changes(**changes)
