"""Shared fixtures for FSM tests.

The orchestrator's sleep is injected. Tests pass a fake sleep that
records calls and, when asked, performs the currently targeted
operation, so a whole cycle runs instantly and deterministically.
"""
from __future__ import annotations

import json

import pytest

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.domain.operations import EnforcementMode
from syscall_monitor.interceptor.hooks import HookManager


@pytest.fixture()
def store() -> PolicyStore:
    store = PolicyStore()
    store.set_mode(EnforcementMode.LOG)
    return store


@pytest.fixture()
def sink() -> EventSink:
    return EventSink()


@pytest.fixture()
def hooks(store, sink) -> HookManager:
    return HookManager(store, sink)


@pytest.fixture()
def channel(store, sink) -> ControlChannel:
    return ControlChannel(store, sink)


@pytest.fixture()
def write_config(tmp_path):
    """Write an FSM config to a temp file and return its path."""
    def _write(obj, name="fsm.json"):
        path = tmp_path / name
        path.write_text(obj if isinstance(obj, str) else json.dumps(obj))
        return path
    return _write
