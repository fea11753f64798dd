from __future__ import annotations

from datetime import timedelta

import pytest

from apps.helpdesk.tickets import (
    AssignmentService,
    DefaultNeedsAttentionPolicy,
    MessageThreadService,
    TicketAccessError,
    TicketQueryService,
    TicketRepository,
    TicketService,
    TicketStatus,
    TicketValidationError,
)
from tests.conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, STAFF


async def _open(ticket_service: TicketService, caller=CUSTOMER, subject: str = "Subject"):
    return await ticket_service.create_ticket(caller, subject=subject, description="Details")


@pytest.mark.asyncio
async def test_customer_view_only_lists_own_tickets(
    ticket_service: TicketService, query_service: TicketQueryService
):
    mine = await _open(ticket_service)
    await _open(ticket_service, OTHER_CUSTOMER)
    await ticket_service.set_status(mine.id, TicketStatus.URGENT, STAFF)

    summaries = await query_service.list_for(CUSTOMER, status=TicketStatus.CLOSED, query="nothing")

    assert [summary.ticket.id for summary in summaries] == [mine.id]


@pytest.mark.asyncio
async def test_staff_listing_combines_status_and_query(
    ticket_service: TicketService, query_service: TicketQueryService
):
    vpn_urgent = await _open(ticket_service, subject="VPN down")
    vpn_open = await _open(ticket_service, subject="VPN slow")
    billing = await _open(ticket_service, OTHER_CUSTOMER, subject="Billing")
    await ticket_service.set_status(vpn_urgent.id, TicketStatus.URGENT, STAFF)

    everything = await query_service.list_for(STAFF, query="   ")
    vpn = await query_service.list_for(STAFF, query=" vpn ")
    urgent_vpn = await query_service.list_for(ADMIN, status=TicketStatus.URGENT, query="vpn")

    assert {s.ticket.id for s in everything} == {vpn_urgent.id, vpn_open.id, billing.id}
    assert {s.ticket.id for s in vpn} == {vpn_urgent.id, vpn_open.id}
    assert [s.ticket.id for s in urgent_vpn] == [vpn_urgent.id]


@pytest.mark.asyncio
async def test_summaries_carry_thread_details(
    ticket_service: TicketService,
    message_service: MessageThreadService,
    query_service: TicketQueryService,
    clock,
):
    ticket = await _open(ticket_service)
    await message_service.append_message(ticket.id, CUSTOMER, "Hello?")
    clock.advance(minutes=1)
    reply = await message_service.append_message(ticket.id, STAFF, "We are on it " + "x" * 200)

    [summary] = await query_service.staff_view(STAFF)

    assert summary.message_count == 2
    assert summary.last_message_at == reply.created_at
    assert summary.last_message_from_staff is True
    assert summary.last_message.startswith("We are on it")
    assert len(summary.last_message) == 120
    assert summary.ticket.customer_name == "Casey Customer"


@pytest.mark.asyncio
async def test_summary_without_messages(ticket_service: TicketService, query_service: TicketQueryService):
    await _open(ticket_service)

    [summary] = await query_service.customer_view(CUSTOMER)

    assert summary.message_count == 0
    assert summary.last_message is None
    assert summary.last_message_from_staff is None


@pytest.mark.asyncio
async def test_staff_views_are_partitioned(
    ticket_service: TicketService,
    assignment_service: AssignmentService,
    query_service: TicketQueryService,
):
    urgent = await _open(ticket_service, subject="Outage")
    assigned = await _open(ticket_service, subject="Question")
    await ticket_service.set_status(urgent.id, TicketStatus.URGENT, STAFF)
    await assignment_service.assign(assigned.id, STAFF)

    assert [s.ticket.id for s in await query_service.urgent(STAFF)] == [urgent.id]
    assert [s.ticket.id for s in await query_service.unassigned(ADMIN)] == [urgent.id]
    in_status = await query_service.staff_view(STAFF, status=TicketStatus.OPEN)
    assert [s.ticket.id for s in in_status] == [assigned.id]


@pytest.mark.asyncio
async def test_staff_views_reject_customers(query_service: TicketQueryService):
    for view in (query_service.staff_view, query_service.urgent, query_service.unassigned,
                 query_service.needs_attention, query_service.stats):
        with pytest.raises(TicketAccessError):
            await view(CUSTOMER)
    with pytest.raises(TicketAccessError):
        await query_service.search(CUSTOMER, "anything")


@pytest.mark.asyncio
async def test_needs_attention_default_policy(
    ticket_service: TicketService,
    message_service: MessageThreadService,
    assignment_service: AssignmentService,
    query_service: TicketQueryService,
):
    unassigned = await _open(ticket_service, subject="Nobody owns me")
    waiting = await _open(ticket_service, subject="Customer spoke last")
    answered = await _open(ticket_service, subject="Staff spoke last")
    closed = await _open(ticket_service, subject="Done")
    for ticket in (waiting, answered, closed):
        await assignment_service.assign(ticket.id, STAFF)
    await message_service.append_message(waiting.id, CUSTOMER, "Any update?")
    await message_service.append_message(answered.id, CUSTOMER, "Any update?")
    await message_service.append_message(answered.id, STAFF, "Fixed")
    await ticket_service.close_ticket(closed.id, STAFF)

    flagged = {summary.ticket.id for summary in await query_service.needs_attention(STAFF)}

    assert flagged == {unassigned.id, waiting.id}


@pytest.mark.asyncio
async def test_closed_urgent_ticket_never_needs_attention(
    ticket_service: TicketService, query_service: TicketQueryService
):
    ticket = await _open(ticket_service)
    await ticket_service.set_status(ticket.id, TicketStatus.URGENT, STAFF)
    assert [s.ticket.id for s in await query_service.needs_attention(STAFF)] == [ticket.id]

    await ticket_service.close_ticket(ticket.id, STAFF)
    assert await query_service.needs_attention(STAFF) == []


@pytest.mark.asyncio
async def test_staleness_window_flags_quiet_tickets(
    repository: TicketRepository,
    ticket_service: TicketService,
    message_service: MessageThreadService,
    assignment_service: AssignmentService,
    clock,
):
    policy = DefaultNeedsAttentionPolicy(stale_after=timedelta(hours=24))
    service = TicketQueryService(repository, needs_attention=policy, clock=clock)
    ticket = await _open(ticket_service)
    await assignment_service.assign(ticket.id, STAFF)
    await message_service.append_message(ticket.id, STAFF, "Waiting on you")

    assert await service.needs_attention(STAFF) == []

    clock.advance(hours=25)
    assert [s.ticket.id for s in await service.needs_attention(STAFF)] == [ticket.id]


@pytest.mark.asyncio
async def test_search_matches_subject_and_messages_case_insensitively(
    ticket_service: TicketService,
    message_service: MessageThreadService,
    query_service: TicketQueryService,
):
    by_subject = await _open(ticket_service, subject="VPN drops hourly")
    by_message = await _open(ticket_service, subject="Network")
    await _open(ticket_service, subject="Billing")
    await message_service.append_message(by_message.id, CUSTOMER, "my vpn client crashes")

    results = await query_service.search(STAFF, "  Vpn ")

    assert {s.ticket.id for s in results} == {by_subject.id, by_message.id}


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(
    ticket_service: TicketService, query_service: TicketQueryService
):
    await _open(ticket_service, subject="100% broken")
    await _open(ticket_service, subject="1000 users")

    results = await query_service.search(STAFF, "0%")

    assert [s.ticket.subject for s in results] == ["100% broken"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_empty_search_is_rejected(query_service: TicketQueryService, query):
    with pytest.raises(TicketValidationError):
        await query_service.search(STAFF, query)


@pytest.mark.asyncio
async def test_stats_counts_statuses(
    ticket_service: TicketService,
    assignment_service: AssignmentService,
    query_service: TicketQueryService,
):
    await _open(ticket_service)
    second = await _open(ticket_service)
    third = await _open(ticket_service)
    await ticket_service.set_status(second.id, TicketStatus.IN_PROGRESS, STAFF)
    await ticket_service.close_ticket(third.id, STAFF)
    await assignment_service.assign(second.id, STAFF)

    stats = await query_service.stats(ADMIN)

    assert stats.total == 3
    assert (stats.open, stats.in_progress, stats.urgent, stats.closed) == (1, 1, 0, 1)
    assert stats.unassigned == 2
    assert stats.needs_attention == 1
