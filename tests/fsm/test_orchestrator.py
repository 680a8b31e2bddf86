"""Tests for the FSM Orchestrator.

Covers: cyclic wrap after N observations, epoch filtering of stale
events, exact-N bounded polling, cancellation at poll boundaries,
fatal control errors, policy left as-is on exit, and a run against a
remote monitor through ControlClient/RemoteEventView.
"""
from __future__ import annotations

import pytest

from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.client import ControlClient, RemoteEventView
from syscall_monitor.control.protocol import SetTargetOperation
from syscall_monitor.control.server import ControlServer
from syscall_monitor.domain.decisions import EventOutcome
from syscall_monitor.domain.errors import DetectionTimeout, TransportError, ValidationError
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.fsm.config import parse_fsm
from syscall_monitor.fsm.orchestrator import Orchestrator
from syscall_monitor.fsm.state import FsmState

CALLER = 777


class PerformingSleep:
    """Fake sleep that performs the currently targeted operation.

    Every poll-interval sleep triggers the hook for whatever operation
    the store is targeting, as an operator running the workload would.
    """

    def __init__(self, hooks, store, poll_interval):
        self.hooks = hooks
        self.store = store
        self.poll_interval = poll_interval
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if seconds == self.poll_interval:
            target = self.store.get_snapshot().target_operation
            self.hooks.on_intercept(target, CALLER)


class NeverSource:
    """Event source that never observes anything; counts polls."""

    def __init__(self):
        self.polls = 0

    def mark(self):
        return -1

    def has_observed(self, operation, since=None, window=20):
        self.polls += 1
        return False


def _orchestrator(channel, events, fsm, sleep, **kwargs):
    return Orchestrator(
        channel, events, fsm,
        poll_interval=0.5, settle_interval=0.25, sleep=sleep, **kwargs,
    )


# ── Cycling ──

def test_three_observations_wrap_to_state_zero(hooks, store, sink, channel):
    fsm = parse_fsm(["open", "read", "write"])
    sleep = PerformingSleep(hooks, store, 0.5)
    orch = _orchestrator(channel, sink, fsm, sleep)

    assert orch.run(max_transitions=3) == 3
    assert fsm.current_index == 0
    assert orch.transitions == 3
    observed = [e.operation for e in sink.tail()]
    assert observed == [OperationKind.OPEN, OperationKind.READ, OperationKind.WRITE]


def test_settle_pause_between_states(hooks, store, sink, channel):
    fsm = parse_fsm(["open", "write"])
    sleep = PerformingSleep(hooks, store, 0.5)
    _orchestrator(channel, sink, fsm, sleep).run(max_transitions=2)
    assert sleep.calls == [0.5, 0.25, 0.5]


def test_step_targets_current_state(hooks, store, sink, channel):
    fsm = parse_fsm(["write", "open"])
    orch = _orchestrator(channel, sink, fsm, PerformingSleep(hooks, store, 0.5))
    assert orch.step() is OperationKind.WRITE
    assert store.get_snapshot().target_operation is OperationKind.WRITE
    assert fsm.current is OperationKind.OPEN


def test_policy_not_reset_after_run(hooks, store, sink, channel):
    fsm = parse_fsm(["read", "write"])
    orch = _orchestrator(channel, sink, fsm, PerformingSleep(hooks, store, 0.5))
    orch.run(max_transitions=2)
    snap = store.get_snapshot()
    assert snap.mode is EnforcementMode.LOG
    assert snap.target_operation is OperationKind.WRITE


# ── Observation epochs ──

def test_stale_event_does_not_count(hooks, store, sink, channel):
    """A READ logged before the step started is not evidence for it."""
    sink.record(OperationKind.READ, CALLER, EventOutcome.OBSERVED)
    fsm = FsmState((OperationKind.READ,))
    orch = _orchestrator(channel, sink, fsm, sleep=lambda s: None)
    with pytest.raises(DetectionTimeout):
        orch.step(max_polls=3)
    assert fsm.current_index == 0


def test_denied_event_does_not_count(store, sink, channel):
    fsm = FsmState((OperationKind.OPEN,))

    def deny_sleep(seconds):
        sink.record(OperationKind.OPEN, CALLER, EventOutcome.DENIED)

    orch = _orchestrator(channel, sink, fsm, deny_sleep)
    with pytest.raises(DetectionTimeout):
        orch.step(max_polls=2)


# ── Bounded wait ──

@pytest.mark.parametrize("cap", [1, 2, 5, 10])
def test_timeout_after_exactly_n_polls(channel, cap):
    source = NeverSource()
    sleeps: list[float] = []
    orch = _orchestrator(channel, source, FsmState((OperationKind.OPEN,)), sleeps.append)
    with pytest.raises(DetectionTimeout) as excinfo:
        orch.wait_for_observation(OperationKind.OPEN, max_polls=cap)
    assert source.polls == cap
    assert len(sleeps) == cap
    assert excinfo.value.attempts == cap
    assert excinfo.value.operation is OperationKind.OPEN


def test_timeout_is_not_a_crash(channel):
    orch = _orchestrator(channel, NeverSource(), FsmState((OperationKind.READ,)), lambda s: None)
    with pytest.raises(TimeoutError, match=r"No read\(\) observed after 4 polls"):
        orch.step(max_polls=4)


def test_zero_cap_is_rejected(channel):
    orch = _orchestrator(channel, NeverSource(), FsmState((OperationKind.READ,)), lambda s: None)
    with pytest.raises(ValueError):
        orch.wait_for_observation(OperationKind.READ, max_polls=0)


# ── Cancellation ──

def test_cancel_takes_effect_at_next_poll_boundary(channel):
    source = NeverSource()
    orch = None

    def sleep(seconds):
        if source.polls == 2:
            orch.cancel()

    orch = _orchestrator(channel, source, FsmState((OperationKind.OPEN,)), sleep)
    assert orch.run() == 0
    # the poll already in progress when cancel() landed still completed
    assert source.polls == 3
    assert orch.cancelled


def test_cancel_before_run(channel):
    orch = _orchestrator(channel, NeverSource(), FsmState((OperationKind.OPEN,)), lambda s: None)
    orch.cancel()
    assert orch.run() == 0


# ── Control errors are fatal ──

class FailingControl:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def apply(self, request):
        self.calls += 1
        raise self.exc


@pytest.mark.parametrize("exc", [
    TransportError("monitor gone"),
    ValidationError("bad target"),
])
def test_control_error_aborts_run(sink, exc):
    control = FailingControl(exc)
    orch = _orchestrator(control, sink, FsmState((OperationKind.OPEN,)), lambda s: None)
    with pytest.raises(type(exc)):
        orch.run()
    assert control.calls == 1


# ── Remote monitor ──

def test_run_against_remote_monitor(hooks, store, sink):
    server = ControlServer(ControlChannel(store, sink), port=0)
    server.serve_in_background()
    assert server.wait_ready(timeout=5.0)
    try:
        host, port = server.address
        with ControlClient(host, port) as client:
            fsm = parse_fsm(["write", "read"])
            orch = _orchestrator(
                client, RemoteEventView(client), fsm,
                PerformingSleep(hooks, store, 0.5),
            )
            assert orch.run(max_transitions=2) == 2
            assert fsm.current_index == 0
            assert client.get_state().state.target_operation is OperationKind.READ
    finally:
        server.stop()


def test_set_target_request_is_what_gets_sent(sink):
    sent = []

    class Recorder:
        def apply(self, request):
            sent.append(request)
            sink.record(request.operation, CALLER, EventOutcome.OBSERVED)

    orch = _orchestrator(Recorder(), sink, parse_fsm(["read"]), lambda s: None)
    orch.step(max_polls=1)
    assert sent == [SetTargetOperation(OperationKind.READ)]


def test_progress_lines_go_to_reporter(hooks, store, sink, channel):
    lines: list[str] = []
    orch = Orchestrator(
        channel, sink, parse_fsm(["read"]),
        poll_interval=0.5, settle_interval=0.25,
        sleep=PerformingSleep(hooks, store, 0.5), report=lines.append,
    )
    orch.run(max_transitions=1)
    assert lines == [
        "[FSM] Starting FSM execution",
        "[FSM] Current State: 1/1 - Monitoring: read",
        "[FSM] Waiting for read() syscall...",
        "[FSM] Observed read()! Transitioning to next state...",
    ]
