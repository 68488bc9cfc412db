from enum import StrEnum
from typing import Dict, FrozenSet


class SessionStatus(StrEnum):
    PENDING = "pending"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    FAILED = "failed"


TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.ASSEMBLING, SessionStatus.FAILED}),
    SessionStatus.ASSEMBLING: frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


def can_transition(current: SessionStatus, next_: SessionStatus) -> bool:
    return next_ in TRANSITIONS[current]


def is_terminal(status: SessionStatus) -> bool:
    return not TRANSITIONS[status]
