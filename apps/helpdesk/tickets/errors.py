from __future__ import annotations

from .state import TicketStatus


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketValidationError(TicketServiceError):
    """Raised when a required field is missing or blank."""


class TicketAccessError(TicketServiceError):
    """Raised when the caller's role or ownership does not permit an operation."""


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""


class StaffNotFoundError(TicketNotFoundError):
    """Raised when an assignment targets an unknown staff account."""


class TicketStateError(TicketServiceError):
    """Raised when the ticket's current status forbids the operation."""

    def __init__(self, message: str, *, status: TicketStatus) -> None:
        super().__init__(message)
        self.status = status


class TicketConflictError(TicketStateError):
    """Raised when a write was based on a stale ticket version."""

    def __init__(self, message: str, *, status: TicketStatus, version: int) -> None:
        super().__init__(message, status=status)
        self.version = version
