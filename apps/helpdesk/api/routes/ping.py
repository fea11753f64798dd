from fastapi import APIRouter, Depends

from apps.helpdesk.dependencies.auth import CurrentUser, role_required
from apps.helpdesk.tickets.identity import Role

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/secure",
    summary="Staff-only health probe",
    dependencies=[Depends(role_required(Role.STAFF, Role.ADMIN))],
)
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.username, "role": user.role.value}
