"""Shared fixtures for control-plane tests.

Servers bind to OS-assigned ports and are stopped after each test. The
HookManager is never installed here: tests drive on_intercept() directly
with synthetic pids so nothing else in the process can add events.
"""
from __future__ import annotations

import socket
from dataclasses import dataclass

import pytest

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.client import ControlClient
from syscall_monitor.control.server import ControlServer
from syscall_monitor.interceptor.hooks import HookManager


@dataclass
class Core:
    store: PolicyStore
    sink: EventSink
    hooks: HookManager
    channel: ControlChannel


@pytest.fixture()
def core() -> Core:
    store = PolicyStore()
    sink = EventSink()
    return Core(store, sink, HookManager(store, sink), ControlChannel(store, sink))


@pytest.fixture()
def server(core):
    srv = ControlServer(core.channel, host="127.0.0.1", port=0)
    srv.serve_in_background()
    assert srv.wait_ready(timeout=5.0)
    try:
        yield srv
    finally:
        srv.stop()


@pytest.fixture()
def client(server):
    host, port = server.address
    with ControlClient(host, port, timeout=5.0) as c:
        yield c


@pytest.fixture()
def dead_port() -> int:
    """A port nothing is listening on."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port
