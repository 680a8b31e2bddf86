"""Tests for the syscall-monitor CLI.

Everything that can be rejected locally (flag combinations, syscall
names, FSM files) must be rejected before a connection is attempted.
"""
from __future__ import annotations

import json
import socket

import pytest

from syscall_monitor import cli
from syscall_monitor.cli import main
from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.server import ControlServer
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.fsm.orchestrator import Orchestrator
from syscall_monitor.interceptor.hooks import HookManager


@pytest.fixture()
def store() -> PolicyStore:
    return PolicyStore()


@pytest.fixture()
def sink() -> EventSink:
    return EventSink()


@pytest.fixture()
def port(store, sink):
    srv = ControlServer(ControlChannel(store, sink), port=0)
    srv.serve_in_background()
    assert srv.wait_ready(timeout=5.0)
    try:
        yield srv.address[1]
    finally:
        srv.stop()


@pytest.fixture()
def dead_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


# ── Argument handling ──

def test_no_arguments_prints_help(capsys):
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "--syscall" in capsys.readouterr().out


def test_modes_are_mutually_exclusive():
    with pytest.raises(SystemExit) as excinfo:
        main(["--log", "--block"])
    assert excinfo.value.code == 2


def test_file_requires_log_mode(capsys, dead_port):
    assert main(["--block", "--file", "fsm.json", "--port", str(dead_port)]) == 1
    out = capsys.readouterr().out
    assert "--file can only be used with --log mode" in out
    assert "Opening control channel" not in out


def test_unknown_syscall_rejected_locally(capsys, dead_port):
    assert main(["--log", "--syscall", "close", "--port", str(dead_port)]) == 1
    out = capsys.readouterr().out
    assert "Invalid syscall name: close" in out
    assert "Opening control channel" not in out


@pytest.mark.parametrize("name", ["OPEN", "Write", ""])
def test_syscall_name_must_match_exactly(capsys, dead_port, name):
    assert main(["--log", "--syscall", name, "--port", str(dead_port)]) == 1
    out = capsys.readouterr().out
    assert "Invalid syscall name" in out
    assert "Opening control channel" not in out


def test_bad_fsm_file_rejected_locally(capsys, tmp_path, dead_port):
    path = tmp_path / "fsm.json"
    path.write_text(json.dumps({"states": ["open", "close"]}))
    assert main(["--log", "--file", str(path), "--port", str(dead_port)]) == 1
    out = capsys.readouterr().out
    assert "Invalid syscall in state 1" in out
    assert "Opening control channel" not in out


def test_missing_fsm_file(capsys, tmp_path, dead_port):
    missing = tmp_path / "nope.json"
    assert main(["--log", "--file", str(missing), "--port", str(dead_port)]) == 1
    assert "Failed to open FSM file" in capsys.readouterr().out


# ── Talking to a monitor ──

def test_unreachable_monitor(capsys, dead_port):
    assert main(["--off", "--port", str(dead_port)]) == 1
    out = capsys.readouterr().out
    assert "[ERROR] Failed to open control channel" in out
    assert "Make sure the monitored process is running" in out


def test_flags_update_remote_policy(capsys, store, port):
    rc = main(["--block", "--syscall", "write", "--pid", "4242", "--port", str(port)])
    assert rc == 0
    snap = store.get_snapshot()
    assert snap.mode is EnforcementMode.BLOCK
    assert snap.target_operation is OperationKind.WRITE
    assert snap.process_filter == 4242
    out = capsys.readouterr().out
    assert "[INFO] Mode changed to: BLOCK" in out
    assert "[INFO] Target syscall set to: write" in out
    assert "[INFO] Target PID set to: 4242" in out
    assert "[INFO] Commands executed successfully" in out


def test_syscall_only_leaves_mode_alone(store, port):
    assert main(["--syscall", "read", "--port", str(port)]) == 0
    snap = store.get_snapshot()
    assert snap.mode is EnforcementMode.OFF
    assert snap.target_operation is OperationKind.READ


def test_any_process_pid(store, port):
    store.set_target_process(99)
    assert main(["--log", "--pid", "-1", "--port", str(port)]) == 0
    assert store.get_snapshot().process_filter == -1



# ── FSM mode ──

def test_fsm_run_until_interrupted(capsys, monkeypatch, tmp_path, store, sink, port):
    """One full cycle against a live monitor, then Ctrl+C."""
    hooks = HookManager(store, sink)

    class OneCycle(Orchestrator):
        # Every sleep performs the current target; after one full cycle
        # the next sleep plays the operator pressing Ctrl+C.
        def __init__(self, *args, **kwargs):
            super().__init__(*args, sleep=self._tick, **kwargs)

        def _tick(self, seconds):
            if self.transitions >= len(self.fsm):
                raise KeyboardInterrupt
            hooks.on_intercept(store.get_snapshot().target_operation, 4242)

    monkeypatch.setattr(cli, "Orchestrator", OneCycle)
    path = tmp_path / "fsm.json"
    path.write_text(json.dumps({"states": ["open", "write"]}))

    rc = main([
        "--log", "--file", str(path), "--port", str(port),
        "--poll-interval", "0", "--settle-interval", "0",
    ])

    assert rc == 0
    snap = store.get_snapshot()
    assert snap.mode is EnforcementMode.LOG
    assert snap.target_operation is OperationKind.WRITE
    out = capsys.readouterr().out
    assert "[FSM] Loaded FSM with 2 states: open -> write (loops back)" in out
    assert "[INFO] Mode changed to: LOG" in out
    assert "[FSM] Current State: 2/2 - Monitoring: write" in out
    assert "[FSM] Observed write()! Transitioning to next state..." in out
    assert "[FSM] Stopped after 2 transitions" in out
    assert "Commands executed successfully" not in out
