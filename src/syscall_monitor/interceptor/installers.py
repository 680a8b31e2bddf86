"""Wire a HookManager into the running interpreter.

OPEN  -> sys.addaudithook, "open" event. Fires for builtins.open, io.open
         and os.open before the file is opened; raising aborts the open.
READ  -> os.read replaced by a checking wrapper
WRITE -> os.write replaced by a checking wrapper

CPython has no way to remove an audit hook, so exactly one dispatcher is
registered per process (on first install) and it forwards to whichever
manager is currently installed. With nothing installed the dispatcher is
a string compare and a global load.

Higher-level file objects do not route through os.read/os.write (FileIO
calls the C read/write directly). Use MonitoredFile, via
HookManager.wrap_file(), to put those under the READ/WRITE hooks.
"""
from __future__ import annotations

import functools
import logging
import os
import sys
import threading
from typing import IO, TYPE_CHECKING, Any, Callable

from syscall_monitor.domain.operations import OperationKind

if TYPE_CHECKING:
    from syscall_monitor.interceptor.hooks import HookManager

log = logging.getLogger(__name__)

_active: HookManager | None = None
_audit_registered = False
_originals: dict[str, Callable[..., Any]] = {}
_install_lock = threading.Lock()


def _audit_dispatch(event: str, args: tuple) -> None:
    if event != "open":
        return
    manager = _active
    if manager is not None:
        manager.check(OperationKind.OPEN)


def _checking(kind: OperationKind, original: Callable[..., Any]):
    @functools.wraps(original)
    def wrapper(*args, **kwargs):
        manager = _active
        if manager is not None:
            manager.check(kind)
        return original(*args, **kwargs)
    return wrapper


def install(manager: HookManager) -> None:
    """Make `manager` the process's active interceptor.

    Raises RuntimeError if a different manager is already installed.
    Installing the same manager twice is a no-op.
    """
    global _active, _audit_registered
    with _install_lock:
        if _active is manager:
            return
        if _active is not None:
            raise RuntimeError("Another HookManager is already installed")

        if not _audit_registered:
            sys.addaudithook(_audit_dispatch)
            _audit_registered = True

        for name, kind in (("read", OperationKind.READ), ("write", OperationKind.WRITE)):
            original = getattr(os, name)
            _originals[name] = original
            setattr(os, name, _checking(kind, original))

        _active = manager
    log.debug("Hooks registered for open, read, write")


def uninstall(manager: HookManager | None = None) -> None:
    """Detach the active manager and restore os.read/os.write.

    With `manager` given, only detaches if it is the one installed.
    """
    global _active
    with _install_lock:
        if _active is None or (manager is not None and _active is not manager):
            return
        _active = None
        for name, original in _originals.items():
            setattr(os, name, original)
        _originals.clear()
    log.debug("Hooks unregistered")


def active_manager() -> HookManager | None:
    return _active


class MonitoredFile:
    """File-object proxy that runs the READ/WRITE hooks before each call.

    Everything that is not a read or write is delegated untouched.
    """

    _READS = frozenset({"read", "read1", "readline", "readlines", "readinto", "readinto1"})
    _WRITES = frozenset({"write", "writelines"})

    def __init__(self, raw: IO[Any], manager: HookManager) -> None:
        self._raw = raw
        self._manager = manager

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._raw, name)
        if name in self._READS:
            return self._guard(OperationKind.READ, attr)
        if name in self._WRITES:
            return self._guard(OperationKind.WRITE, attr)
        return attr

    def _guard(self, kind: OperationKind, method: Callable[..., Any]):
        @functools.wraps(method)
        def guarded(*args, **kwargs):
            self._manager.check(kind)
            return method(*args, **kwargs)

        return guarded

    def __iter__(self):
        return self

    def __next__(self):
        self._manager.check(OperationKind.READ)
        return next(self._raw)

    def __enter__(self) -> MonitoredFile:
        self._raw.__enter__()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._raw.__exit__(*exc_info)

    @property
    def raw(self) -> IO[Any]:
        return self._raw
