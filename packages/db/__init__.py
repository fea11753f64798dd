"""Database models and utilities."""

from .models import TicketAuditLogTable, TicketMessageTable, TicketTable, UserTable

__all__ = [
    "TicketAuditLogTable",
    "TicketMessageTable",
    "TicketTable",
    "UserTable",
]
