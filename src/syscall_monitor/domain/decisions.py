"""Intercept decision outcomes."""
from enum import Enum, auto


class Decision(Enum):
    PROCEED = auto()
    DENY = auto()

    def is_permitted(self) -> bool:
        """Returns True only for PROCEED."""
        return self is Decision.PROCEED


class EventOutcome(Enum):
    OBSERVED = auto()
    DENIED = auto()
