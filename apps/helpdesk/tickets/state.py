from __future__ import annotations

from enum import Enum
from typing import Mapping


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    URGENT = "URGENT"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    """Informational priority attached to a ticket."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_ALL_STATUSES = frozenset(TicketStatus)


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    Staff have full manual control over status, so the default table lets
    every state reach every other state, including reopening a closed
    ticket. Pass a stricter table to enforce an ordering.
    """

    _DEFAULT_TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        status: _ALL_STATUSES - {status} for status in TicketStatus
    }

    def __init__(self, transitions: Mapping[TicketStatus, frozenset[TicketStatus]] | None = None) -> None:
        self._transitions = transitions if transitions is not None else self._DEFAULT_TRANSITIONS

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.OPEN

    @staticmethod
    def accepts_messages(status: TicketStatus) -> bool:
        return status != TicketStatus.CLOSED

    def can_transition(self, current: TicketStatus, target: TicketStatus) -> bool:
        if current == target:
            return True
        return target in self._transitions.get(current, frozenset())

    def assert_transition(self, current: TicketStatus, target: TicketStatus) -> None:
        if not self.can_transition(current, target):
            raise ValueError(f"Invalid ticket status transition: {current.value} -> {target.value}")
