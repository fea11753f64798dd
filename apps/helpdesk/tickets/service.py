from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from opentelemetry import trace

from .access import ensure_ticket_visible, require_customer, require_staff, require_text
from .errors import TicketConflictError, TicketNotFoundError, TicketStateError
from .identity import Identity
from .models import Ticket, TicketAuditEntry
from .repository import TicketRepository, advance_timestamp
from .state import TicketPriority, TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_version(ticket: Ticket, expected_version: int | None) -> None:
    if expected_version is not None and ticket.version != expected_version:
        raise TicketConflictError(
            f"Ticket {ticket.id} was modified (version {ticket.version}, expected {expected_version})",
            status=ticket.status,
            version=ticket.version,
        )


def audit_entry(
    ticket: Ticket,
    *,
    action: str,
    actor: Identity,
    from_status: TicketStatus | None,
    created_at: datetime,
    metadata: Mapping[str, Any] | None = None,
) -> TicketAuditEntry:
    return TicketAuditEntry(
        id=str(uuid.uuid4()),
        ticket_id=ticket.id,
        action=action,
        actor=actor.username,
        from_status=from_status,
        to_status=ticket.status,
        metadata=dict(metadata or {}),
        created_at=created_at,
    )


class TicketService:
    """Ticket lifecycle: creation, scoped reads and staff status changes."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        state_machine: TicketStateMachine | None = None,
        clock: Clock = utcnow,
        clear_closed_at_on_reopen: bool = True,
    ) -> None:
        self._repository = repository
        self._state_machine = state_machine or TicketStateMachine()
        self._clock = clock
        self._clear_closed_at_on_reopen = clear_closed_at_on_reopen

    async def create_ticket(
        self,
        caller: Identity,
        *,
        subject: str,
        description: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
    ) -> Ticket:
        require_customer(caller)
        subject = require_text(subject, "subject")
        description = require_text(description, "description")

        with tracer.start_as_current_span("tickets.create"):
            now = self._clock()
            ticket = Ticket(
                id=str(uuid.uuid4()),
                subject=subject,
                description=description,
                status=self._state_machine.initial_state(),
                priority=priority,
                customer_id=caller.id,
                customer_name=caller.name,
                assigned_staff_id=None,
                assigned_staff_name=None,
                version=1,
                created_at=now,
                updated_at=now,
            )
            audit = audit_entry(
                ticket,
                action="created",
                actor=caller,
                from_status=None,
                created_at=now,
                metadata={"priority": priority.value},
            )
            await self._repository.create_ticket(ticket, audit)

        logger.info("Ticket %s opened by customer %s", ticket.id, caller.id)
        return ticket

    async def get_ticket(self, ticket_id: str, caller: Identity) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        ensure_ticket_visible(ticket, caller)
        return ticket

    async def set_status(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        caller: Identity,
        *,
        expected_version: int | None = None,
        note: str | None = None,
    ) -> Ticket:
        require_staff(caller)

        def apply(ticket: Ticket) -> TicketAuditEntry:
            ensure_version(ticket, expected_version)
            current = ticket.status
            try:
                self._state_machine.assert_transition(current, new_status)
            except ValueError as exc:
                raise TicketStateError(str(exc), status=current) from exc

            now = advance_timestamp(self._clock(), ticket.updated_at)
            ticket.status = new_status
            ticket.updated_at = now
            ticket.version += 1
            if new_status == TicketStatus.CLOSED:
                if current != TicketStatus.CLOSED or ticket.closed_at is None:
                    ticket.closed_at = now
            elif self._clear_closed_at_on_reopen:
                ticket.closed_at = None

            metadata = {"note": note} if note else {}
            return audit_entry(
                ticket,
                action="status_changed",
                actor=caller,
                from_status=current,
                created_at=now,
                metadata=metadata,
            )

        with tracer.start_as_current_span("tickets.set_status"):
            updated = await self._repository.modify_ticket(ticket_id, apply)
        if updated is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        logger.info("Ticket %s moved to %s by %s", ticket_id, new_status.value, caller.username)
        return updated

    async def close_ticket(
        self, ticket_id: str, caller: Identity, *, expected_version: int | None = None
    ) -> Ticket:
        return await self.set_status(
            ticket_id, TicketStatus.CLOSED, caller, expected_version=expected_version
        )

    async def get_audit_log(self, ticket_id: str, caller: Identity) -> list[TicketAuditEntry]:
        require_staff(caller)
        if await self._repository.get_ticket(ticket_id) is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return await self._repository.get_audit_log(ticket_id)
