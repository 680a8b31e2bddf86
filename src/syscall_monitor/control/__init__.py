"""Control plane: request types, the in-process channel, and its TCP surface.

  - protocol: request/ack types and length-prefixed JSON framing
  - channel: validates and applies requests to a PolicyStore
  - server: one-operator-at-a-time TCP endpoint for a channel
  - client: operator-side handle (plus RemoteEventView for the FSM)
"""
from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.client import ControlClient, RemoteEventView
from syscall_monitor.control.protocol import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ControlAck,
    ControlRequest,
    GetState,
    QueryEvents,
    SetMode,
    SetTargetOperation,
    SetTargetProcess,
    parse_request,
    read_message,
    write_message,
)
from syscall_monitor.control.server import ControlServer

__all__ = [
    "ControlChannel",
    "ControlClient",
    "RemoteEventView",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ControlAck",
    "ControlRequest",
    "GetState",
    "QueryEvents",
    "SetMode",
    "SetTargetOperation",
    "SetTargetProcess",
    "parse_request",
    "read_message",
    "write_message",
    "ControlServer",
]
