"""Shared state touched from the interception hot path.

  - PolicyStore: copy-on-write policy snapshot, wait-free reads
  - EventSink: bounded deque of interception events, lock-free append
"""
from syscall_monitor.concurrency.event_sink import EventPredicate, EventSink
from syscall_monitor.concurrency.policy_store import PolicyStore

__all__ = [
    "EventPredicate",
    "EventSink",
    "PolicyStore",
]
