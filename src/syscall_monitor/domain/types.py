"""Shared type aliases and constants used across the domain."""
from __future__ import annotations

from typing import TypeAlias

ProcessId: TypeAlias = int
SequenceNumber: TypeAlias = int   # Event Sink position, doubles as observation epoch
Timestamp: TypeAlias = float      # Unix epoch seconds

ANY_PROCESS: ProcessId = -1       # process filter sentinel: match every caller
NO_EPOCH: SequenceNumber = -1     # "before the first event"
