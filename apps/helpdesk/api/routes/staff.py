"""Staff and admin triage endpoints.

Every route requires a STAFF or ADMIN bearer token. Fixed paths are
registered before ``/tickets/{ticket_id}`` so they are never captured as ids.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Header, Query, status

from apps.helpdesk.api.schemas import (
    StaffMemberModel,
    StaffReplyRequest,
    TicketAssignRequest,
    TicketAuditLogModel,
    TicketMessageModel,
    TicketModel,
    TicketStatsModel,
    TicketStatusChangeRequest,
    TicketSummaryModel,
    parse_status_filter,
    to_http_error,
)
from apps.helpdesk.dependencies.tickets import (
    AssignmentServiceDep,
    MessageServiceDep,
    QueryServiceDep,
    StaffUser,
    TicketServiceDep,
    require_staff,
)
from apps.helpdesk.tickets import TicketServiceError, TicketSummary

router = APIRouter(prefix="/staff", tags=["staff"], dependencies=[Depends(require_staff)])


def _summaries(items: list[TicketSummary]) -> list[TicketSummaryModel]:
    return [TicketSummaryModel.from_summary(item) for item in items]


@router.get("/tickets", response_model=list[TicketSummaryModel], summary="All tickets, optionally filtered")
async def list_tickets(
    service: QueryServiceDep,
    user: StaffUser,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    query: Annotated[str | None, Query()] = None,
) -> list[TicketSummaryModel]:
    ticket_status = parse_status_filter(status_filter)
    try:
        return _summaries(await service.list_for(user, status=ticket_status, query=query))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tickets/urgent", response_model=list[TicketSummaryModel])
async def list_urgent(service: QueryServiceDep, user: StaffUser) -> list[TicketSummaryModel]:
    try:
        return _summaries(await service.urgent(user))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tickets/unassigned", response_model=list[TicketSummaryModel])
async def list_unassigned(service: QueryServiceDep, user: StaffUser) -> list[TicketSummaryModel]:
    try:
        return _summaries(await service.unassigned(user))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tickets/needs-attention", response_model=list[TicketSummaryModel])
async def list_needs_attention(service: QueryServiceDep, user: StaffUser) -> list[TicketSummaryModel]:
    try:
        return _summaries(await service.needs_attention(user))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tickets/search", response_model=list[TicketSummaryModel])
async def search_tickets(
    service: QueryServiceDep,
    user: StaffUser,
    query: Annotated[str, Query()] = "",
) -> list[TicketSummaryModel]:
    try:
        return _summaries(await service.search(user, query))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tickets/stats", response_model=TicketStatsModel)
async def ticket_stats(service: QueryServiceDep, user: StaffUser) -> TicketStatsModel:
    try:
        return TicketStatsModel.from_entity(await service.stats(user))
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/members", response_model=list[StaffMemberModel], summary="Accounts that can own tickets")
async def list_staff_members(service: AssignmentServiceDep, user: StaffUser) -> list[StaffMemberModel]:
    try:
        members = await service.list_assignable_staff(user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [StaffMemberModel.from_identity(member) for member in members]


@router.get("/tickets/{ticket_id}", response_model=TicketModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep, user: StaffUser) -> TicketModel:
    try:
        ticket = await service.get_ticket(ticket_id, user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.get("/tickets/{ticket_id}/messages", response_model=list[TicketMessageModel])
async def list_ticket_messages(
    ticket_id: str, service: MessageServiceDep, user: StaffUser
) -> list[TicketMessageModel]:
    try:
        messages = await service.list_messages(ticket_id, user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [TicketMessageModel.from_entity(message, user) for message in messages]


@router.get("/tickets/{ticket_id}/audit", response_model=list[TicketAuditLogModel])
async def list_ticket_audit(
    ticket_id: str, service: TicketServiceDep, user: StaffUser
) -> list[TicketAuditLogModel]:
    try:
        entries = await service.get_audit_log(ticket_id, user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [TicketAuditLogModel.from_entity(entry) for entry in entries]


@router.post(
    "/tickets/{ticket_id}/reply",
    response_model=TicketMessageModel,
    status_code=status.HTTP_201_CREATED,
)
async def reply_to_ticket(
    ticket_id: str,
    payload: StaffReplyRequest,
    service: MessageServiceDep,
    user: StaffUser,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> TicketMessageModel:
    try:
        message = await service.append_message(
            ticket_id, user, payload.message, idempotency_key=idempotency_key
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketMessageModel.from_entity(message, user)


@router.post("/tickets/{ticket_id}/assign", response_model=TicketModel)
async def assign_ticket(
    ticket_id: str,
    service: AssignmentServiceDep,
    user: StaffUser,
    payload: Annotated[TicketAssignRequest | None, Body()] = None,
) -> TicketModel:
    request = payload or TicketAssignRequest()
    try:
        ticket = await service.assign(
            ticket_id,
            user,
            staff_id=request.staff_id,
            expected_version=request.expected_version,
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.put("/tickets/{ticket_id}/status", response_model=TicketModel)
async def change_ticket_status(
    ticket_id: str,
    payload: TicketStatusChangeRequest,
    service: TicketServiceDep,
    user: StaffUser,
) -> TicketModel:
    try:
        ticket = await service.set_status(
            ticket_id,
            payload.status,
            user,
            expected_version=payload.expected_version,
            note=payload.note,
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.post("/tickets/{ticket_id}/close", response_model=TicketModel)
async def close_ticket(
    ticket_id: str,
    service: TicketServiceDep,
    user: StaffUser,
    expected_version: Annotated[int | None, Query(ge=1)] = None,
) -> TicketModel:
    try:
        ticket = await service.close_ticket(ticket_id, user, expected_version=expected_version)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)
