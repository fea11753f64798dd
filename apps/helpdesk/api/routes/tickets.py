from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, status

from apps.helpdesk.api.schemas import (
    TicketCreateRequest,
    TicketMessageCreateRequest,
    TicketMessageModel,
    TicketModel,
    TicketSummaryModel,
    to_http_error,
)
from apps.helpdesk.dependencies.auth import CurrentUser
from apps.helpdesk.dependencies.tickets import MessageServiceDep, QueryServiceDep, TicketServiceDep
from apps.helpdesk.tickets import TicketServiceError

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post("", response_model=TicketModel, status_code=status.HTTP_201_CREATED, summary="Open a ticket")
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketModel:
    try:
        ticket = await service.create_ticket(
            user,
            subject=payload.subject,
            description=payload.description,
            priority=payload.priority,
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.get("", response_model=list[TicketSummaryModel], summary="List the caller's tickets")
async def list_tickets(service: QueryServiceDep, user: CurrentUser) -> list[TicketSummaryModel]:
    try:
        summaries = await service.list_for(user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [TicketSummaryModel.from_summary(item) for item in summaries]


@router.get("/{ticket_id}", response_model=TicketModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep, user: CurrentUser) -> TicketModel:
    try:
        ticket = await service.get_ticket(ticket_id, user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageModel,
    status_code=status.HTTP_201_CREATED,
)
async def add_ticket_message(
    ticket_id: str,
    payload: TicketMessageCreateRequest,
    service: MessageServiceDep,
    user: CurrentUser,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> TicketMessageModel:
    try:
        message = await service.append_message(
            ticket_id, user, payload.content, idempotency_key=idempotency_key
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return TicketMessageModel.from_entity(message, user)


@router.get("/{ticket_id}/messages", response_model=list[TicketMessageModel])
async def list_ticket_messages(
    ticket_id: str, service: MessageServiceDep, user: CurrentUser
) -> list[TicketMessageModel]:
    try:
        messages = await service.list_messages(ticket_id, user)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [TicketMessageModel.from_entity(message, user) for message in messages]
