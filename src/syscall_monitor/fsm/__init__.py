"""Control-plane state machine that cycles the monitored operation.

  - FsmState: the operation cycle and its cursor
  - load_fsm / parse_fsm: validated loading from JSON
  - Orchestrator: retarget, wait for evidence, advance, forever
"""
from syscall_monitor.fsm.config import load_fsm, parse_fsm
from syscall_monitor.fsm.orchestrator import Controller, EventSource, Orchestrator
from syscall_monitor.fsm.state import FsmState

__all__ = [
    "load_fsm",
    "parse_fsm",
    "Controller",
    "EventSource",
    "Orchestrator",
    "FsmState",
]
