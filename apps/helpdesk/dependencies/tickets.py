from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from apps.helpdesk.dependencies.auth import User, role_required
from apps.helpdesk.tickets import (
    AssignmentService,
    MessageThreadService,
    TicketQueryService,
    TicketService,
)
from apps.helpdesk.tickets.identity import Role

require_staff = role_required(Role.STAFF, Role.ADMIN)

StaffUser = Annotated[User, Depends(require_staff)]


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _service(request, "ticket_service")


async def get_message_service(request: Request) -> MessageThreadService:
    return _service(request, "message_service")


async def get_assignment_service(request: Request) -> AssignmentService:
    return _service(request, "assignment_service")


async def get_query_service(request: Request) -> TicketQueryService:
    return _service(request, "query_service")


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
MessageServiceDep = Annotated[MessageThreadService, Depends(get_message_service)]
AssignmentServiceDep = Annotated[AssignmentService, Depends(get_assignment_service)]
QueryServiceDep = Annotated[TicketQueryService, Depends(get_query_service)]
