"""Interception hook manager: one synchronous checkpoint per operation kind.

Every monitored open/read/write in the process calls on_intercept() right
before the operation takes effect. The decision algorithm:

  1. Read the policy snapshot (one attribute load, no lock)
  2. OFF -> PROCEED. This is the fast path, paid on every call
  3. LOG and kind == target -> record OBSERVED, PROCEED
  4. BLOCK and kind == target and the process filter matches
     -> record DENIED, DENY
  5. Anything else -> PROCEED

BLOCK denies all three kinds the same way: the call never reaches the OS
and the caller gets PermissionError.

The hook never raises. If deciding blows up, the fault is logged and the
operation proceeds (fail open): a broken monitor must not break the
protected code. The only failure a caller ever sees is the deliberate
PermissionError from check() on DENY.
"""
from __future__ import annotations

import errno
import logging
import os
import threading
from typing import IO, Any

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.domain.decisions import Decision, EventOutcome
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.policy import PolicySnapshot
from syscall_monitor.domain.types import ProcessId
from syscall_monitor.interceptor import installers
from syscall_monitor.interceptor.installers import MonitoredFile

log = logging.getLogger(__name__)


class HookManager:
    """Decides PROCEED/DENY for intercepted operations.

    Args:
        store: where the active policy lives.
        sink: where LOG/BLOCK outcomes are recorded.

    Thread-safe: holds no mutable state of its own apart from a
    thread-local re-entrancy flag.
    """

    def __init__(self, store: PolicyStore, sink: EventSink) -> None:
        self._store = store
        self._sink = sink
        self._local = threading.local()

    @property
    def store(self) -> PolicyStore:
        return self._store

    @property
    def sink(self) -> EventSink:
        return self._sink

    def on_intercept(self, kind: OperationKind, caller_pid: ProcessId) -> Decision:
        """Decide what happens to one invocation of `kind` by `caller_pid`."""
        try:
            policy = self._store.get_snapshot()
            if policy.mode is EnforcementMode.OFF:
                return Decision.PROCEED
            if kind is not policy.target_operation:
                return Decision.PROCEED
        except Exception:
            return self._fail_open(kind)

        # Recording an event logs a line; a logging handler that opens or
        # writes a file would land right back here.
        if getattr(self._local, "busy", False):
            return Decision.PROCEED
        self._local.busy = True
        try:
            return self._enforce(policy, kind, caller_pid)
        except Exception:
            return self._fail_open(kind)
        finally:
            self._local.busy = False

    def check(self, kind: OperationKind) -> None:
        """Hook body used by installed interceptors.

        Raises PermissionError(EPERM) when the policy denies the call.
        """
        if self.on_intercept(kind, os.getpid()) is Decision.DENY:
            raise PermissionError(
                errno.EPERM, f"{kind.label}() blocked by syscall monitor"
            )

    def install(self) -> None:
        """Register one hook per OperationKind for this process."""
        installers.install(self)

    def uninstall(self) -> None:
        installers.uninstall(self)

    def wrap_file(self, fileobj: IO[Any]) -> MonitoredFile:
        """Proxy a file object so its read*/write* calls pass through check()."""
        return MonitoredFile(fileobj, self)

    def __enter__(self) -> HookManager:
        self.install()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.uninstall()

    def _enforce(
        self, policy: PolicySnapshot, kind: OperationKind, caller_pid: ProcessId
    ) -> Decision:
        if policy.mode is EnforcementMode.LOG:
            self._emit(kind, caller_pid, EventOutcome.OBSERVED)
            return Decision.PROCEED
        if policy.mode is EnforcementMode.BLOCK and policy.matches_process(caller_pid):
            self._emit(kind, caller_pid, EventOutcome.DENIED)
            return Decision.DENY
        return Decision.PROCEED

    def _emit(self, kind: OperationKind, pid: ProcessId, outcome: EventOutcome) -> None:
        event = self._sink.record(kind, pid, outcome)
        log.info(event.format_line())

    def _fail_open(self, kind: OperationKind) -> Decision:
        self._local.busy = True
        try:
            log.exception("Intercept of %s failed, letting it proceed", kind)
        finally:
            self._local.busy = False
        return Decision.PROCEED
