"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class TicketTable(SQLModel, table=True):
    """Customer support tickets."""

    __tablename__ = "tickets"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    subject: str = Field(sa_column=Column(Text, nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(16), nullable=False))
    customer_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    customer_name: str = Field(sa_column=Column(String(255), nullable=False))
    assigned_staff_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    assigned_staff_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class TicketMessageTable(SQLModel, table=True):
    """Append-only conversation entries belonging to a ticket.

    ``sender_*`` columns are stamped on every new message. The ``staff_*``,
    ``customer_*`` and ``is_from_staff`` columns carry sender information for
    rows imported from older systems that never had a unified sender.
    """

    __tablename__ = "ticket_messages"
    __table_args__ = (Index("ix_ticket_messages_ticket_order", "ticket_id", "created_at", "sequence"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    sequence: int = Field(sa_column=Column(Integer, nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    sender_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    sender_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    sender_role: str | None = Field(default=None, sa_column=Column(String(16), nullable=True))
    staff_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    staff_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    customer_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    customer_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    is_from_staff: bool | None = Field(default=None, sa_column=Column(Boolean, nullable=True))
    idempotency_key: str | None = Field(default=None, sa_column=Column(String(128), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAuditLogTable(SQLModel, table=True):
    """Audit trail describing discrete ticket actions."""

    __tablename__ = "ticket_audit_logs"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    action: str = Field(sa_column=Column(String(100), nullable=False))
    actor: str = Field(sa_column=Column(String(255), nullable=False))
    from_status: str | None = Field(default=None, sa_column=Column(String(32), nullable=True))
    to_status: str | None = Field(default=None, sa_column=Column(String(32), nullable=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class UserTable(SQLModel, table=True):
    """Accounts known to the helpdesk, mirrored from the identity provider."""

    __tablename__ = "users"

    id: str = Field(primary_key=True, index=True)
    username: str = Field(sa_column=Column(String(150), nullable=False, unique=True))
    display_name: str = Field(sa_column=Column(String(255), nullable=False))
    role: str = Field(sa_column=Column(String(16), nullable=False, index=True))
    email: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
