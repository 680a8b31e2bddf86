"""Load an FSM state cycle from JSON.

Accepted shapes:
    {"states": ["open", "read", "write"]}
    ["open", "read", "write"]

Every entry is validated before anything is built. Any problem raises
FsmConfigError with a message saying what and where, and no partial
machine is ever returned.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any

from syscall_monitor.domain.errors import FsmConfigError, ValidationError
from syscall_monitor.domain.operations import OperationKind
from syscall_monitor.fsm.state import FsmState

log = logging.getLogger(__name__)


def load_fsm(path: str | os.PathLike[str]) -> FsmState:
    """Read and validate an FSM config file."""
    try:
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        raise FsmConfigError(f"Failed to open FSM file {os.fspath(path)!r}: {exc}") from exc

    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FsmConfigError(f"Failed to parse JSON: {exc}") from exc

    fsm = parse_fsm(obj)
    log.debug("Loaded FSM with %d states: %s", len(fsm), fsm.describe())
    return fsm


def parse_fsm(obj: Any) -> FsmState:
    """Validate an already-decoded config object."""
    if isinstance(obj, dict):
        if "states" not in obj:
            raise FsmConfigError("FSM config must have a 'states' key")
        entries = obj["states"]
    else:
        entries = obj

    if not isinstance(entries, list):
        raise FsmConfigError("'states' must be an array")
    if not entries:
        raise FsmConfigError("FSM must have at least one state")

    states: list[OperationKind] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, str):
            raise FsmConfigError(f"State {i} is not a string: {entry!r}")
        try:
            states.append(OperationKind.from_name(entry))
        except ValidationError:
            raise FsmConfigError(f"Invalid syscall in state {i}: {entry}") from None
    return FsmState(tuple(states))
