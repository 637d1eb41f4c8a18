from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.logging import user_id_var
from refurb_api.core.security import Principal, Role, decode_token, principal_from_claims
from refurb_api.db.session import get_async_session
from refurb_api.services.events import EventBus, event_bus

logger = logging.getLogger(__name__)

# Tokens are issued by the external identity service; tokenUrl is informational for docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


# PUBLIC_INTERFACE
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession for the request; overridden in tests."""
    async for session in get_async_session():
        yield session


# PUBLIC_INTERFACE
def get_event_bus() -> EventBus:
    """Event bus services hand committed events to; overridden in tests."""
    return event_bus


# PUBLIC_INTERFACE
async def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """
    Resolve the calling Principal from the Authorization bearer token.

    The token must carry `sub` (user UUID) and `roles` claims.
    """
    try:
        principal = principal_from_claims(decode_token(token))
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user_id_var.set(str(principal.id))
    return principal


# PUBLIC_INTERFACE
def require_roles(*required: str | Role):
    """
    Create a dependency that requires the current principal to hold one of the given roles.

    ADMIN always passes.
    """

    async def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_any_role(Role.ADMIN, *required):
            logger.info("Role check failed for %s; required one of %s", principal.id, required)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return principal

    return _dep
