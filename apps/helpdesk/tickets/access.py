from __future__ import annotations

from .errors import TicketAccessError, TicketValidationError
from .identity import Identity
from .models import Ticket


def require_staff(caller: Identity) -> None:
    if not caller.is_staff:
        raise TicketAccessError("Staff or admin role required")


def require_customer(caller: Identity) -> None:
    if not caller.is_customer:
        raise TicketAccessError("Only customers can open support tickets")


def ensure_ticket_visible(ticket: Ticket, caller: Identity) -> None:
    """Customers may only see their own tickets; staff and admins see all."""

    if caller.is_staff:
        return
    if ticket.customer_id != caller.id:
        raise TicketAccessError(f"Ticket {ticket.id} belongs to another customer")


def require_text(value: str | None, field_name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise TicketValidationError(f"{field_name} must not be empty")
    return cleaned
