from __future__ import annotations

import pytest
import pytest_asyncio

from apps.helpdesk.tickets import (
    MessageThreadService,
    Role,
    TicketAccessError,
    TicketNotFoundError,
    TicketService,
    TicketStateError,
    TicketStatus,
    TicketValidationError,
)
from tests.conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, STAFF


@pytest_asyncio.fixture
async def ticket(ticket_service: TicketService):
    return await ticket_service.create_ticket(CUSTOMER, subject="Login broken", description="Cannot sign in")


@pytest.mark.asyncio
async def test_append_message_stamps_sender(message_service: MessageThreadService, ticket):
    message = await message_service.append_message(ticket.id, CUSTOMER, "  Still broken  ")

    assert message.content == "Still broken"
    assert message.sender.id == CUSTOMER.id
    assert message.sender.display_name == "Casey Customer"
    assert message.sender.role == Role.CUSTOMER
    assert not message.from_staff
    assert message.is_authored_by(CUSTOMER.id)
    assert message.sequence == 1


@pytest.mark.asyncio
async def test_staff_reply_is_flagged_from_staff(message_service: MessageThreadService, ticket):
    reply = await message_service.append_message(ticket.id, STAFF, "Looking into it")

    assert reply.from_staff
    assert reply.sender.display_name == "Sam Support"
    assert not reply.is_authored_by(CUSTOMER.id)


@pytest.mark.asyncio
async def test_messages_are_listed_in_append_order(
    message_service: MessageThreadService, ticket, clock
):
    first = await message_service.append_message(ticket.id, CUSTOMER, "one")
    second = await message_service.append_message(ticket.id, STAFF, "two")
    clock.advance(seconds=30)
    third = await message_service.append_message(ticket.id, ADMIN, "three")

    thread = await message_service.list_messages(ticket.id, CUSTOMER)

    assert [message.id for message in thread] == [first.id, second.id, third.id]
    assert [message.sequence for message in thread] == [1, 2, 3]
    assert first.created_at < second.created_at < third.created_at


@pytest.mark.asyncio
async def test_clock_going_backwards_keeps_thread_order(
    message_service: MessageThreadService, ticket, clock
):
    first = await message_service.append_message(ticket.id, CUSTOMER, "first")
    clock.advance(minutes=-10)
    second = await message_service.append_message(ticket.id, STAFF, "second")

    assert second.created_at > first.created_at
    thread = await message_service.list_messages(ticket.id, STAFF)
    assert [message.content for message in thread] == ["first", "second"]


@pytest.mark.asyncio
async def test_append_touches_ticket_updated_at(
    message_service: MessageThreadService, ticket_service: TicketService, ticket, clock
):
    clock.advance(minutes=3)
    message = await message_service.append_message(ticket.id, CUSTOMER, "ping")

    refreshed = await ticket_service.get_ticket(ticket.id, CUSTOMER)
    assert refreshed.updated_at == message.created_at
    assert refreshed.status == TicketStatus.OPEN
    assert refreshed.version == ticket.version


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
async def test_blank_content_is_rejected(message_service: MessageThreadService, ticket, content):
    with pytest.raises(TicketValidationError):
        await message_service.append_message(ticket.id, CUSTOMER, content)

    assert await message_service.list_messages(ticket.id, CUSTOMER) == []


@pytest.mark.asyncio
async def test_other_customers_cannot_post_or_read(message_service: MessageThreadService, ticket):
    with pytest.raises(TicketAccessError):
        await message_service.append_message(ticket.id, OTHER_CUSTOMER, "hello")
    with pytest.raises(TicketAccessError):
        await message_service.list_messages(ticket.id, OTHER_CUSTOMER)

    assert await message_service.list_messages(ticket.id, STAFF) == []


@pytest.mark.asyncio
async def test_unknown_ticket_raises_not_found(message_service: MessageThreadService):
    with pytest.raises(TicketNotFoundError):
        await message_service.append_message("missing", CUSTOMER, "hello")
    with pytest.raises(TicketNotFoundError):
        await message_service.list_messages("missing", STAFF)


@pytest.mark.asyncio
async def test_closed_ticket_refuses_messages_until_reopened(
    message_service: MessageThreadService, ticket_service: TicketService, ticket
):
    await ticket_service.close_ticket(ticket.id, STAFF)

    for caller in (CUSTOMER, STAFF, ADMIN):
        with pytest.raises(TicketStateError) as exc:
            await message_service.append_message(ticket.id, caller, "anyone there?")
        assert exc.value.status == TicketStatus.CLOSED

    await ticket_service.set_status(ticket.id, TicketStatus.OPEN, STAFF)
    message = await message_service.append_message(ticket.id, CUSTOMER, "thanks for reopening")
    assert message.sequence == 1


@pytest.mark.asyncio
async def test_idempotency_key_returns_original_message(
    message_service: MessageThreadService, ticket
):
    original = await message_service.append_message(
        ticket.id, CUSTOMER, "double click", idempotency_key="req-1"
    )
    repeated = await message_service.append_message(
        ticket.id, CUSTOMER, "double click", idempotency_key="req-1"
    )

    assert repeated.id == original.id
    assert len(await message_service.list_messages(ticket.id, CUSTOMER)) == 1

    other_sender = await message_service.append_message(
        ticket.id, STAFF, "reply", idempotency_key="req-1"
    )
    assert other_sender.id != original.id


@pytest.mark.asyncio
async def test_overlong_idempotency_key_is_rejected(message_service: MessageThreadService, ticket):
    with pytest.raises(TicketValidationError):
        await message_service.append_message(ticket.id, CUSTOMER, "hello", idempotency_key="k" * 129)
