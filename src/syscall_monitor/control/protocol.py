"""Control protocol: JSON-over-TCP, length-prefixed.

Message format:
    4 bytes: message length (big-endian uint32)
    N bytes: JSON payload (UTF-8)

Request payloads:
    {"op": "set_mode", "mode": 1}                  # or "LOG"
    {"op": "set_target_operation", "operation": 2} # or "write"
    {"op": "set_target_process", "pid": -1}
    {"op": "get_state"}
    {"op": "query_events", "operation": "read", "since": 41, "window": 20}

Response payloads:
    {"ok": true, "state": {"mode": "LOG", "target_operation": "write",
                           "process_filter": -1},
     "epoch": 57, "found": false}
    {"ok": false, "error": "validation", "message": "Invalid mode 7 (...)"}

Validation happens when a request object is built: SetMode(7) raises
ValidationError, so an out-of-range value can never travel further.
Framing faults (peer gone, oversized frame) raise TransportError.
"""
from __future__ import annotations

import json
import socket
import struct
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from syscall_monitor.domain.errors import TransportError, ValidationError
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.policy import PolicySnapshot
from syscall_monitor.domain.types import ProcessId, SequenceNumber

HEADER_SIZE = 4          # 4 bytes, big-endian uint32
MAX_MESSAGE_SIZE = 1024 * 1024  # 1 MB safety limit
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 47113
DEFAULT_WINDOW = 20      # tail window for query_events, like `tail -20`


@dataclass(frozen=True, slots=True)
class SetMode:
    op: ClassVar[str] = "set_mode"
    mode: EnforcementMode

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", EnforcementMode.coerce(self.mode))

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "mode": self.mode.value}


@dataclass(frozen=True, slots=True)
class SetTargetOperation:
    op: ClassVar[str] = "set_target_operation"
    operation: OperationKind

    def __post_init__(self) -> None:
        object.__setattr__(self, "operation", OperationKind.coerce(self.operation))

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "operation": self.operation.value}


@dataclass(frozen=True, slots=True)
class SetTargetProcess:
    op: ClassVar[str] = "set_target_process"
    pid: ProcessId

    def __post_init__(self) -> None:
        if not isinstance(self.pid, int) or isinstance(self.pid, bool):
            raise ValidationError(f"Target PID must be an integer, got {self.pid!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "pid": self.pid}


@dataclass(frozen=True, slots=True)
class GetState:
    op: ClassVar[str] = "get_state"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op}


@dataclass(frozen=True, slots=True)
class QueryEvents:
    """Read-only: has `operation` been observed since epoch `since`?"""
    op: ClassVar[str] = "query_events"
    operation: OperationKind
    since: SequenceNumber | None = None
    window: int = DEFAULT_WINDOW

    def __post_init__(self) -> None:
        object.__setattr__(self, "operation", OperationKind.coerce(self.operation))
        if self.since is not None and (
            not isinstance(self.since, int) or isinstance(self.since, bool)
        ):
            raise ValidationError(f"since must be an integer, got {self.since!r}")
        if (
            not isinstance(self.window, int)
            or isinstance(self.window, bool)
            or self.window < 0
        ):
            raise ValidationError(f"window must be a non-negative integer, got {self.window!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "operation": self.operation.value,
            "since": self.since,
            "window": self.window,
        }


ControlRequest = Union[SetMode, SetTargetOperation, SetTargetProcess, GetState, QueryEvents]


@dataclass(frozen=True, slots=True)
class ControlAck:
    """Successful apply: the state after the change, for confirmation."""
    state: PolicySnapshot
    epoch: SequenceNumber | None = None
    found: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        obj: dict[str, Any] = {"ok": True, "state": self.state.to_dict()}
        if self.epoch is not None:
            obj["epoch"] = self.epoch
        if self.found is not None:
            obj["found"] = self.found
        return obj

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> ControlAck:
        return cls(
            state=PolicySnapshot.from_dict(obj["state"]),
            epoch=obj.get("epoch"),
            found=obj.get("found"),
        )


def parse_request(obj: Any) -> ControlRequest:
    """Build a validated request from a decoded JSON payload.

    Raises ValidationError for unknown ops, missing fields or bad values.
    """
    if not isinstance(obj, dict):
        raise ValidationError("Request must be a JSON object")
    op = obj.get("op")
    try:
        if op == SetMode.op:
            return SetMode(obj["mode"])
        if op == SetTargetOperation.op:
            return SetTargetOperation(obj["operation"])
        if op == SetTargetProcess.op:
            return SetTargetProcess(obj["pid"])
        if op == GetState.op:
            return GetState()
        if op == QueryEvents.op:
            return QueryEvents(
                obj["operation"],
                since=obj.get("since"),
                window=obj.get("window", DEFAULT_WINDOW),
            )
    except KeyError as exc:
        raise ValidationError(f"Request {op!r} is missing field {exc.args[0]!r}") from None
    raise ValidationError(f"Unknown control operation: {op!r}")


def encode(obj: dict[str, Any]) -> bytes:
    """JSON payload bytes (no length prefix)."""
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")  # compact JSON


def decode(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Malformed control message: {exc}") from None


def _recv_exactly(sock: socket.socket, n: int) -> bytes:
    """Read exactly n bytes from a socket, or raise TransportError."""
    chunks: list[bytes] = []
    remaining = n
    while remaining > 0:
        chunk = sock.recv(remaining)
        if not chunk:
            raise TransportError(
                f"Socket closed with {remaining} bytes still expected"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_message(sock: socket.socket) -> bytes:
    """Read a length-prefixed message from a socket.

    Raises:
        TransportError: if the socket closes mid-read or the announced
            length exceeds MAX_MESSAGE_SIZE
    """
    header = _recv_exactly(sock, HEADER_SIZE)
    (msg_len,) = struct.unpack("!I", header)
    if msg_len > MAX_MESSAGE_SIZE:
        raise TransportError(
            f"Message size {msg_len} exceeds limit {MAX_MESSAGE_SIZE}"
        )
    return _recv_exactly(sock, msg_len)


def write_message(sock: socket.socket, payload: bytes) -> None:
    """Write a length-prefixed message to a socket.

    Header and payload go out in one sendall so the OS can coalesce them.
    """
    header = struct.pack("!I", len(payload))
    sock.sendall(header + payload)
