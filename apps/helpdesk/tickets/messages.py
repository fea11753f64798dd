from __future__ import annotations

import logging

from opentelemetry import trace

from .access import ensure_ticket_visible, require_text
from .errors import TicketNotFoundError, TicketStateError, TicketValidationError
from .identity import Identity
from .models import MessageSender, Ticket, TicketMessage
from .repository import TicketRepository
from .service import Clock, utcnow
from .state import TicketStateMachine

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 128


class MessageThreadService:
    """Append-only conversation attached to each ticket."""

    def __init__(self, repository: TicketRepository, *, clock: Clock = utcnow) -> None:
        self._repository = repository
        self._clock = clock

    async def append_message(
        self,
        ticket_id: str,
        caller: Identity,
        content: str,
        *,
        idempotency_key: str | None = None,
    ) -> TicketMessage:
        """Append ``content`` to the ticket thread on behalf of ``caller``.

        The message is stamped with the caller as sender. Closed tickets
        reject new messages from every role until staff reopen them.
        """

        content = require_text(content, "content")
        key = idempotency_key.strip() if idempotency_key else None
        if key and len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise TicketValidationError(
                f"idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
            )
        sender = MessageSender(id=caller.id, display_name=caller.name, role=caller.role)

        def check(ticket: Ticket) -> None:
            ensure_ticket_visible(ticket, caller)
            if not TicketStateMachine.accepts_messages(ticket.status):
                raise TicketStateError(
                    f"Ticket {ticket.id} is {ticket.status.value} and does not accept messages",
                    status=ticket.status,
                )

        with tracer.start_as_current_span("tickets.append_message"):
            message = await self._repository.append_message(
                ticket_id,
                sender=sender,
                content=content,
                now=self._clock(),
                idempotency_key=key or None,
                check=check,
            )
        if message is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        logger.info(
            "Message %s added to ticket %s by %s %s",
            message.id,
            ticket_id,
            caller.role.value.lower(),
            caller.id,
        )
        return message

    async def list_messages(self, ticket_id: str, caller: Identity) -> list[TicketMessage]:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        ensure_ticket_visible(ticket, caller)
        return await self._repository.list_messages(ticket_id)
