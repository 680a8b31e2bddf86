"""Closed enumerations for monitored operations and enforcement modes.

The integer values are the wire encoding used by the control protocol.
They are stable: OPEN=0, READ=1, WRITE=2 and OFF=0, LOG=1, BLOCK=2.
"""
from __future__ import annotations

from enum import Enum

from syscall_monitor.domain.errors import ValidationError


class OperationKind(Enum):
    OPEN = 0
    READ = 1
    WRITE = 2

    @property
    def label(self) -> str:
        """Lowercase name used in config files, log lines and the CLI."""
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> OperationKind:
        """Parse exactly "open", "read" or "write". Raises ValidationError otherwise.

        Matching is exact: no case folding, no whitespace trimming.
        """
        if not isinstance(name, str):
            raise ValidationError(f"Operation name must be a string, got {name!r}")
        member = {op.label: op for op in cls}.get(name)
        if member is None:
            raise ValidationError(
                f"Invalid syscall name: {name} (must be: open, read, or write)"
            )
        return member

    @classmethod
    def coerce(cls, value: object) -> OperationKind:
        """Accept a member, its integer code, or its name."""
        return _coerce(cls, value, "operation")


class EnforcementMode(Enum):
    OFF = 0
    LOG = 1
    BLOCK = 2

    @classmethod
    def coerce(cls, value: object) -> EnforcementMode:
        """Accept a member, its integer code, or its name."""
        return _coerce(cls, value, "mode")


def _coerce(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    # bool is an int subclass; True must not silently mean LOG/READ
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return enum_cls(value)
        except ValueError:
            pass
    elif isinstance(value, str):
        member = enum_cls.__members__.get(value.strip().upper())
        if member is not None:
            return member
    allowed = ", ".join(f"{m.name}={m.value}" for m in enum_cls)
    raise ValidationError(f"Invalid {what} {value!r} (allowed: {allowed})")
