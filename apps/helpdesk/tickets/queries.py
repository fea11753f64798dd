"""Role-scoped ticket views used by the customer page and the staff triage board."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from .access import require_staff, require_text
from .identity import Identity
from .models import TicketStats, TicketSummary
from .repository import TicketRepository
from .service import Clock, utcnow
from .state import TicketStatus


class NeedsAttentionPolicy(Protocol):
    def __call__(self, summary: TicketSummary, now: datetime) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class DefaultNeedsAttentionPolicy:
    """Flag open work that staff should look at next.

    A ticket needs attention when it is not closed and it is urgent, has no
    assignee, or its latest message came from the customer. When
    ``stale_after`` is set, tickets untouched for that long are flagged too.
    """

    stale_after: timedelta | None = None

    def __call__(self, summary: TicketSummary, now: datetime) -> bool:
        ticket = summary.ticket
        if ticket.status == TicketStatus.CLOSED:
            return False
        if ticket.status == TicketStatus.URGENT or not ticket.is_assigned:
            return True
        if summary.awaiting_staff_reply:
            return True
        if self.stale_after is not None:
            last_activity = max(ticket.updated_at, summary.last_message_at or ticket.updated_at)
            return now - last_activity >= self.stale_after
        return False


class TicketQueryService:
    """Compute the ticket lists each role is allowed to see."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        needs_attention: NeedsAttentionPolicy | None = None,
        snippet_length: int = 120,
        clock: Clock = utcnow,
    ) -> None:
        self._repository = repository
        self._needs_attention = needs_attention or DefaultNeedsAttentionPolicy()
        self._snippet_length = snippet_length
        self._clock = clock

    async def customer_view(self, caller: Identity) -> list[TicketSummary]:
        return await self._repository.list_summaries(
            customer_id=caller.id, snippet_length=self._snippet_length
        )

    async def list_for(
        self,
        caller: Identity,
        *,
        status: TicketStatus | None = None,
        query: str | None = None,
    ) -> list[TicketSummary]:
        """Customers get their own tickets and their filters are ignored.

        Staff get every ticket, narrowed by ``status`` and by a ``query`` matched
        against subjects and message text. A blank query is no filter.
        """

        if not caller.is_staff:
            return await self.customer_view(caller)
        return await self.staff_view(caller, status=status, query=query)

    async def staff_view(
        self,
        caller: Identity,
        *,
        status: TicketStatus | None = None,
        query: str | None = None,
    ) -> list[TicketSummary]:
        require_staff(caller)
        search = query.strip() if query else None
        return await self._repository.list_summaries(
            status=status, search=search or None, snippet_length=self._snippet_length
        )

    async def urgent(self, caller: Identity) -> list[TicketSummary]:
        return await self.staff_view(caller, status=TicketStatus.URGENT)

    async def unassigned(self, caller: Identity) -> list[TicketSummary]:
        require_staff(caller)
        return await self._repository.list_summaries(
            unassigned=True, snippet_length=self._snippet_length
        )

    async def needs_attention(self, caller: Identity) -> list[TicketSummary]:
        summaries = await self.staff_view(caller)
        now = self._clock()
        return [summary for summary in summaries if self._needs_attention(summary, now)]

    async def search(self, caller: Identity, query: str) -> list[TicketSummary]:
        require_staff(caller)
        term = require_text(query, "query")
        return await self._repository.list_summaries(
            search=term, snippet_length=self._snippet_length
        )

    async def stats(self, caller: Identity) -> TicketStats:
        summaries = await self.staff_view(caller)
        now = self._clock()
        stats = TicketStats(total=len(summaries))
        for summary in summaries:
            ticket = summary.ticket
            if ticket.status == TicketStatus.OPEN:
                stats.open += 1
            elif ticket.status == TicketStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif ticket.status == TicketStatus.URGENT:
                stats.urgent += 1
            elif ticket.status == TicketStatus.CLOSED:
                stats.closed += 1
            if not ticket.is_assigned:
                stats.unassigned += 1
            if self._needs_attention(summary, now):
                stats.needs_attention += 1
        return stats
