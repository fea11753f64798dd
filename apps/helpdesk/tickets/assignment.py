from __future__ import annotations

import logging
from typing import Iterable, Protocol

from opentelemetry import trace

from .access import require_staff
from .errors import StaffNotFoundError, TicketAccessError, TicketNotFoundError
from .identity import STAFF_ROLES, Identity, Role
from .models import Ticket, TicketAuditEntry
from .repository import TicketRepository, advance_timestamp
from .service import Clock, audit_entry, ensure_version, utcnow

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AccountDirectory(Protocol):
    async def get_account(self, account_id: str) -> Identity | None:
        ...

    async def list_accounts(self, *, roles: Iterable[Role] | None = None) -> list[Identity]:
        ...


class AssignmentService:
    """Decide who may take ownership of a ticket and record the assignee.

    Staff can only claim tickets for themselves. Admins can additionally
    direct a ticket to any active staff or admin account.
    """

    def __init__(
        self,
        repository: TicketRepository,
        accounts: AccountDirectory,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._repository = repository
        self._accounts = accounts
        self._clock = clock

    async def resolve_assignee(self, caller: Identity, staff_id: str | None) -> Identity:
        require_staff(caller)
        if staff_id is None or staff_id == caller.id:
            return caller
        if not caller.is_admin:
            raise TicketAccessError("Only admins can assign tickets to other staff members")

        account = await self._accounts.get_account(staff_id)
        if account is None or account.role not in STAFF_ROLES:
            raise StaffNotFoundError(f"Staff member {staff_id} not found")
        return account

    async def assign(
        self,
        ticket_id: str,
        caller: Identity,
        *,
        staff_id: str | None = None,
        expected_version: int | None = None,
    ) -> Ticket:
        assignee = await self.resolve_assignee(caller, staff_id)

        def apply(ticket: Ticket) -> TicketAuditEntry:
            ensure_version(ticket, expected_version)
            previous = ticket.assigned_staff_id
            now = advance_timestamp(self._clock(), ticket.updated_at)
            ticket.assigned_staff_id = assignee.id
            ticket.assigned_staff_name = assignee.name
            ticket.updated_at = now
            ticket.version += 1
            return audit_entry(
                ticket,
                action="assigned",
                actor=caller,
                from_status=ticket.status,
                created_at=now,
                metadata={"assignee": assignee.id, "previous_assignee": previous or ""},
            )

        with tracer.start_as_current_span("tickets.assign"):
            updated = await self._repository.modify_ticket(ticket_id, apply)
        if updated is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        logger.info("Ticket %s assigned to %s by %s", ticket_id, assignee.id, caller.username)
        return updated

    async def list_assignable_staff(self, caller: Identity) -> list[Identity]:
        require_staff(caller)
        return await self._accounts.list_accounts(roles=STAFF_ROLES)
