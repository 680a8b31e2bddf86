"""In-process control channel: validated requests -> Policy Store.

This is the boundary where bad input fails loudly. Requests arrive
already validated (the request types refuse out-of-range values), and
apply() re-checks that the store actually took the change, so nothing
is ever silently ignored on this path.

Single-operator model: no queueing, no ordering contract. Concurrent
writers race and the last write wins.
"""
from __future__ import annotations

import logging
from typing import Any

from syscall_monitor.concurrency.event_sink import EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore
from syscall_monitor.control.protocol import (
    ControlAck,
    ControlRequest,
    GetState,
    QueryEvents,
    SetMode,
    SetTargetOperation,
    SetTargetProcess,
    parse_request,
)
from syscall_monitor.domain.errors import ChannelError, ValidationError

log = logging.getLogger(__name__)


class ControlChannel:
    """Applies ControlRequests to a PolicyStore.

    Args:
        store: the policy to mutate.
        sink: optional event sink, enables query_events and epoch reporting.
    """

    def __init__(self, store: PolicyStore, sink: EventSink | None = None) -> None:
        self._store = store
        self._sink = sink

    def apply(self, request: ControlRequest) -> ControlAck:
        """Apply one request and return the resulting state.

        Raises:
            ValidationError: the store refused the value
            ChannelError: the request type is not supported here
        """
        if isinstance(request, SetMode):
            self._require(self._store.set_mode(request.mode), request)
        elif isinstance(request, SetTargetOperation):
            self._require(self._store.set_target_operation(request.operation), request)
        elif isinstance(request, SetTargetProcess):
            self._require(self._store.set_target_process(request.pid), request)
        elif isinstance(request, QueryEvents):
            return self._query(request)
        elif not isinstance(request, GetState):
            raise ChannelError(f"Unsupported control request: {request!r}")
        return self._ack()

    def apply_payload(self, obj: Any) -> ControlAck:
        """Parse a decoded JSON request and apply it."""
        return self.apply(parse_request(obj))

    def _query(self, request: QueryEvents) -> ControlAck:
        if self._sink is None:
            raise ChannelError("This channel has no event sink to query")
        found = self._sink.has_observed(
            request.operation, since=request.since, window=request.window
        )
        return ControlAck(
            state=self._store.get_snapshot(),
            epoch=self._sink.mark(),
            found=found,
        )

    def _ack(self) -> ControlAck:
        epoch = self._sink.mark() if self._sink is not None else None
        return ControlAck(state=self._store.get_snapshot(), epoch=epoch)

    @staticmethod
    def _require(applied: bool, request: ControlRequest) -> None:
        if not applied:
            raise ValidationError(f"Policy store rejected {request!r}")
        log.debug("Applied %r", request)
