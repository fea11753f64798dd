"""Request and response models shared by the customer and staff routers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator

from apps.helpdesk.tickets import (
    Identity,
    Role,
    Ticket,
    TicketAccessError,
    TicketAuditEntry,
    TicketConflictError,
    TicketMessage,
    TicketNotFoundError,
    TicketPriority,
    TicketServiceError,
    TicketStateError,
    TicketStats,
    TicketStatus,
    TicketSummary,
    TicketValidationError,
)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


class TicketModel(BaseModel):
    id: str
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    customer_id: str
    customer_name: str
    assigned_staff_id: str | None = None
    assigned_staff_name: str | None = None
    version: int
    created_at: str
    updated_at: str
    closed_at: str | None = None

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketModel":
        return cls(
            id=ticket.id,
            subject=ticket.subject,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            customer_id=ticket.customer_id,
            customer_name=ticket.customer_name,
            assigned_staff_id=ticket.assigned_staff_id,
            assigned_staff_name=ticket.assigned_staff_name,
            version=ticket.version,
            created_at=ticket.created_at.isoformat(),
            updated_at=ticket.updated_at.isoformat(),
            closed_at=_isoformat(ticket.closed_at),
        )


class TicketSummaryModel(TicketModel):
    message_count: int = 0
    last_message: str | None = None
    last_message_at: str | None = None
    last_message_from_staff: bool | None = None

    @classmethod
    def from_summary(cls, summary: TicketSummary) -> "TicketSummaryModel":
        base = TicketModel.from_entity(summary.ticket).model_dump()
        return cls(
            **base,
            message_count=summary.message_count,
            last_message=summary.last_message,
            last_message_at=_isoformat(summary.last_message_at),
            last_message_from_staff=summary.last_message_from_staff,
        )


class MessageSenderModel(BaseModel):
    id: str | None = None
    display_name: str
    role: Role


class TicketMessageModel(BaseModel):
    id: str
    ticket_id: str
    sequence: int
    sender: MessageSenderModel
    content: str
    from_staff: bool
    is_own: bool
    created_at: str

    @classmethod
    def from_entity(cls, message: TicketMessage, viewer: Identity) -> "TicketMessageModel":
        return cls(
            id=message.id,
            ticket_id=message.ticket_id,
            sequence=message.sequence,
            sender=MessageSenderModel(
                id=message.sender.id,
                display_name=message.sender.display_name,
                role=message.sender.role,
            ),
            content=message.content,
            from_staff=message.from_staff,
            is_own=message.is_authored_by(viewer.id),
            created_at=message.created_at.isoformat(),
        )


class TicketAuditLogModel(BaseModel):
    id: str
    action: str
    actor: str
    from_status: TicketStatus | None = None
    to_status: TicketStatus | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_entity(cls, entry: TicketAuditEntry) -> "TicketAuditLogModel":
        return cls(
            id=entry.id,
            action=entry.action,
            actor=entry.actor,
            from_status=entry.from_status,
            to_status=entry.to_status,
            metadata=dict(entry.metadata),
            created_at=entry.created_at.isoformat(),
        )


class TicketStatsModel(BaseModel):
    total: int
    open: int
    in_progress: int
    urgent: int
    closed: int
    unassigned: int
    needs_attention: int

    @classmethod
    def from_entity(cls, stats: TicketStats) -> "TicketStatsModel":
        return cls(
            total=stats.total,
            open=stats.open,
            in_progress=stats.in_progress,
            urgent=stats.urgent,
            closed=stats.closed,
            unassigned=stats.unassigned,
            needs_attention=stats.needs_attention,
        )


class StaffMemberModel(BaseModel):
    id: str
    username: str
    display_name: str
    role: Role

    @classmethod
    def from_identity(cls, identity: Identity) -> "StaffMemberModel":
        return cls(id=identity.id, username=identity.username, display_name=identity.name, role=identity.role)


class TicketCreateRequest(BaseModel):
    subject: str = Field(min_length=1)
    description: str = Field(min_length=1)
    priority: TicketPriority = Field(default=TicketPriority.MEDIUM)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value: Any) -> Any:
        return _upper(value)


class TicketMessageCreateRequest(BaseModel):
    content: str = Field(min_length=1)


class StaffReplyRequest(BaseModel):
    message: str = Field(min_length=1)


class TicketAssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    staff_id: str | None = Field(default=None, alias="staffId")
    expected_version: int | None = Field(default=None, ge=1)


class TicketStatusChangeRequest(BaseModel):
    status: TicketStatus
    note: str | None = None
    expected_version: int | None = Field(default=None, ge=1)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return _upper(value)


def parse_status_filter(value: str | None) -> TicketStatus | None:
    """Read a status query parameter the same way request bodies read it."""

    if value is None or not value.strip():
        return None
    try:
        return TicketStatus(_upper(value))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Unknown ticket status: {value}") from exc


def to_http_error(exc: TicketServiceError) -> HTTPException:
    """Translate a ticket core error into the matching HTTP response."""

    if isinstance(exc, TicketValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, TicketAccessError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, TicketNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TicketConflictError):
        return HTTPException(
            status_code=409,
            detail={"message": str(exc), "status": exc.status.value, "version": exc.version},
        )
    if isinstance(exc, TicketStateError):
        return HTTPException(
            status_code=409,
            detail={"message": str(exc), "status": exc.status.value},
        )
    return HTTPException(status_code=400, detail=str(exc))
