"""Operator-side handle on a running monitor's control server.

ControlClient is an explicit handle owned by its caller. Nothing about
the connection is process-global, and as a context manager it is
released on every exit path.

    with ControlClient("127.0.0.1", 47113) as client:
        client.set_mode(EnforcementMode.LOG)
        client.set_target_operation("write")
"""
from __future__ import annotations

import logging
import socket
from typing import Any

from syscall_monitor.control.protocol import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_WINDOW,
    ControlAck,
    ControlRequest,
    GetState,
    QueryEvents,
    SetMode,
    SetTargetOperation,
    SetTargetProcess,
    decode,
    encode,
    read_message,
    write_message,
)
from syscall_monitor.domain.errors import ChannelError, TransportError, ValidationError
from syscall_monitor.domain.operations import EnforcementMode, OperationKind
from syscall_monitor.domain.types import ProcessId, SequenceNumber

log = logging.getLogger(__name__)


class ControlClient:
    """Blocking request/response client for ControlServer.

    Args:
        host: server address (default "127.0.0.1")
        port: server port
        timeout: socket timeout in seconds for connect and each reply
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float = 5.0,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._sock: socket.socket | None = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> ControlClient:
        """Connect. Raises TransportError if the monitor can't be reached."""
        if self._sock is not None:
            return self
        try:
            self._sock = socket.create_connection(
                (self._host, self._port), timeout=self._timeout
            )
        except OSError as exc:
            raise TransportError(
                f"Failed to open control channel at {self._host}:{self._port}: {exc}"
            ) from exc
        log.debug("Connected to %s:%d", self._host, self._port)
        return self

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def __enter__(self) -> ControlClient:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def apply(self, request: ControlRequest) -> ControlAck:
        """Send one request and wait for its acknowledgement.

        Raises:
            ValidationError: the server rejected the request's values
            TransportError: not connected, or the connection broke
            ChannelError: any other server-side refusal
        """
        if self._sock is None:
            raise TransportError("Control channel is not open")
        try:
            write_message(self._sock, encode(request.to_dict()))
            reply = decode(read_message(self._sock))
        except TransportError:
            self.close()
            raise
        except OSError as exc:
            self.close()
            raise TransportError(f"Control channel failed: {exc}") from exc
        return self._parse_reply(reply)

    # -- convenience wrappers -------------------------------------------------

    def set_mode(self, mode: EnforcementMode | int | str) -> ControlAck:
        return self.apply(SetMode(mode))

    def set_target_operation(self, operation: OperationKind | int | str) -> ControlAck:
        return self.apply(SetTargetOperation(operation))

    def set_target_process(self, pid: ProcessId) -> ControlAck:
        return self.apply(SetTargetProcess(pid))

    def get_state(self) -> ControlAck:
        return self.apply(GetState())

    def query_events(
        self,
        operation: OperationKind | int | str,
        since: SequenceNumber | None = None,
        window: int = DEFAULT_WINDOW,
    ) -> ControlAck:
        return self.apply(QueryEvents(operation, since=since, window=window))

    @staticmethod
    def _parse_reply(reply: Any) -> ControlAck:
        if not isinstance(reply, dict):
            raise TransportError(f"Unexpected reply from monitor: {reply!r}")
        if reply.get("ok"):
            try:
                return ControlAck.from_dict(reply)
            except (KeyError, TypeError, ValueError) as exc:
                raise TransportError(f"Malformed reply from monitor: {reply!r}") from exc
        message = reply.get("message", "request rejected")
        if reply.get("error") == "validation":
            raise ValidationError(message)
        raise ChannelError(message)


class RemoteEventView:
    """Event-source view of a remote monitor's sink, via query_events.

    Gives the orchestrator the same mark()/has_observed() surface it gets
    from a local EventSink.
    """

    def __init__(self, client: ControlClient, window: int = DEFAULT_WINDOW) -> None:
        self._client = client
        self._window = window

    def mark(self) -> SequenceNumber:
        ack = self._client.get_state()
        if ack.epoch is None:
            raise ChannelError("Monitor does not report observation epochs")
        return ack.epoch

    def has_observed(
        self,
        operation: OperationKind,
        since: SequenceNumber | None = None,
        window: int | None = None,
    ) -> bool:
        ack = self._client.query_events(
            operation, since=since, window=self._window if window is None else window
        )
        return bool(ack.found)
