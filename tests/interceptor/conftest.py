"""Shared fixtures for interception tests.

Hooks are exercised two ways: by calling on_intercept() directly with a
synthetic caller pid (deterministic, no global side effects), and by
installing them into the interpreter for the few tests that need a real
open/os.read/os.write to go through.
"""
from __future__ import annotations

import pytest

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.domain.operations import EnforcementMode
from syscall_monitor.interceptor.hooks import HookManager
from syscall_monitor.interceptor import installers


@pytest.fixture()
def store() -> PolicyStore:
    return PolicyStore()


@pytest.fixture()
def sink() -> EventSink:
    return EventSink()


@pytest.fixture()
def hooks(store, sink) -> HookManager:
    return HookManager(store, sink)


@pytest.fixture()
def installed(hooks, store):
    """Install hooks for the test; always switch OFF and uninstall afterwards."""
    hooks.install()
    try:
        yield hooks
    finally:
        store.set_mode(EnforcementMode.OFF)
        installers.uninstall()
