"""Support ticket domain models and services."""

from .assignment import AccountDirectory, AssignmentService
from .errors import (
    StaffNotFoundError,
    TicketAccessError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    TicketStateError,
    TicketValidationError,
)
from .identity import Identity, Role
from .messages import MessageThreadService
from .models import MessageSender, Ticket, TicketAuditEntry, TicketMessage, TicketStats, TicketSummary
from .queries import DefaultNeedsAttentionPolicy, NeedsAttentionPolicy, TicketQueryService
from .repository import TicketRepository
from .service import TicketService
from .state import TicketPriority, TicketStateMachine, TicketStatus

__all__ = [
    "AccountDirectory",
    "AssignmentService",
    "DefaultNeedsAttentionPolicy",
    "Identity",
    "MessageSender",
    "MessageThreadService",
    "NeedsAttentionPolicy",
    "Role",
    "StaffNotFoundError",
    "Ticket",
    "TicketAccessError",
    "TicketAuditEntry",
    "TicketConflictError",
    "TicketMessage",
    "TicketNotFoundError",
    "TicketPriority",
    "TicketQueryService",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketStateError",
    "TicketStateMachine",
    "TicketStats",
    "TicketStatus",
    "TicketSummary",
    "TicketValidationError",
]
