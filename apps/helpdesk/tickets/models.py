from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .identity import Role, STAFF_ROLES
from .state import TicketPriority, TicketStatus


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a customer support ticket."""

    id: str
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    customer_id: str
    customer_name: str
    assigned_staff_id: str | None
    assigned_staff_name: str | None
    version: int
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None

    @property
    def is_assigned(self) -> bool:
        return self.assigned_staff_id is not None

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED


@dataclass(frozen=True, slots=True)
class MessageSender:
    """Resolved author of a message."""

    id: str | None
    display_name: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass(slots=True)
class TicketMessage:
    """Individual message belonging to a ticket thread."""

    id: str
    ticket_id: str
    sequence: int
    sender: MessageSender
    content: str
    created_at: datetime

    @property
    def from_staff(self) -> bool:
        return self.sender.is_staff

    def is_authored_by(self, account_id: str) -> bool:
        return self.sender.id is not None and self.sender.id == account_id


@dataclass(slots=True)
class TicketSummary:
    """Ticket plus the denormalized thread data needed to render a list row."""

    ticket: Ticket
    message_count: int = 0
    last_message: str | None = None
    last_message_at: datetime | None = None
    last_message_from_staff: bool | None = None

    @property
    def awaiting_staff_reply(self) -> bool:
        return self.last_message_from_staff is False


@dataclass(slots=True)
class TicketAuditEntry:
    """History entry describing a state or assignment change."""

    id: str
    ticket_id: str
    action: str
    actor: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TicketStats:
    """Counters shown on the staff dashboard."""

    total: int = 0
    open: int = 0
    in_progress: int = 0
    urgent: int = 0
    closed: int = 0
    unassigned: int = 0
    needs_attention: int = 0
