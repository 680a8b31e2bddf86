"""SyscallMonitor: everything a host process needs, wired together.

    with SyscallMonitor(port=47113) as monitor:
        ...  # this process's open/read/write now go through the hooks,
             # and an operator can retarget them over the control port

start() installs the hooks, then opens the control server. stop()
undoes both in reverse order and is safe to call more than once.
"""
from __future__ import annotations

import logging

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.protocol import DEFAULT_HOST, DEFAULT_PORT
from syscall_monitor.control.server import ControlServer
from syscall_monitor.interceptor.hooks import HookManager

log = logging.getLogger(__name__)


class SyscallMonitor:
    """Owns a PolicyStore, EventSink, HookManager and optional ControlServer.

    Args:
        host, port: control server bind address (port 0 = OS-assigned)
        serve: run the control server (default True)
        capacity: EventSink capacity
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        serve: bool = True,
        capacity: int = 1024,
    ) -> None:
        self.store = PolicyStore()
        self.sink = EventSink(capacity=capacity)
        self.hooks = HookManager(self.store, self.sink)
        self.channel = ControlChannel(self.store, self.sink)
        self.server = ControlServer(self.channel, host=host, port=port) if serve else None
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        log.info("Initializing syscall monitor")
        self.hooks.install()
        if self.server is not None:
            try:
                self.server.serve_in_background()
            except OSError:
                self.hooks.uninstall()
                raise
            host, port = self.server.address
            log.info("Control channel listening on %s:%d", host, port)
        self._started = True
        log.info("Syscall monitor started")

    def stop(self) -> None:
        if not self._started:
            return
        if self.server is not None:
            self.server.stop()
        self.hooks.uninstall()
        self._started = False
        log.info("Syscall monitor stopped")

    @property
    def address(self) -> tuple[str, int]:
        if self.server is None:
            raise RuntimeError("Monitor was created with serve=False")
        return self.server.address

    def __enter__(self) -> SyscallMonitor:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
