from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from apps.helpdesk.core.config import AccountConfig, Settings, get_settings
from apps.helpdesk.tickets.identity import Identity, Role

# Request handlers receive the caller as ``User``; it is the identity the
# provider resolved from the bearer token.
User = Identity

bearer_scheme = HTTPBearer(auto_error=False)


def _settings_for(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if isinstance(settings, Settings) else get_settings()


def resolve_user_from_token(token: str | None, tokens: Mapping[str, AccountConfig]) -> User | None:
    """Return the identity associated with ``token``.

    ``None`` means the request is anonymous. Unknown tokens are rejected.
    """

    if token is None:
        return None

    account = tokens.get(token)
    if account is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return account.to_identity()


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User | None:
    """Identity set by the RBAC middleware, or resolved from the bearer token."""

    cached = getattr(request.state, "user", None)
    if isinstance(cached, Identity):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token, _settings_for(request).auth_tokens)
    request.state.user = user
    return user


async def get_current_user(user: Annotated[User | None, Depends(get_optional_user)]) -> User:
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def role_required(*roles: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user holds one of ``roles``."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
