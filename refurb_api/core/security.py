from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from refurb_api.core.settings import get_app_settings


class Role(str, Enum):
    """Roles carried in the `roles` claim of bearer tokens."""

    ADMIN = "ADMIN"
    INSPECTION_ENGINEER = "INSPECTION_ENGINEER"
    L2_ENGINEER = "L2_ENGINEER"
    L3_ENGINEER = "L3_ENGINEER"
    DISPLAY_TECHNICIAN = "DISPLAY_TECHNICIAN"
    BATTERY_TECHNICIAN = "BATTERY_TECHNICIAN"
    PAINT_SHOP = "PAINT_SHOP"
    QC_ENGINEER = "QC_ENGINEER"
    WAREHOUSE_MANAGER = "WAREHOUSE_MANAGER"
    MIS_WAREHOUSE_EXECUTIVE = "MIS_WAREHOUSE_EXECUTIVE"


# PUBLIC_INTERFACE
class Principal(BaseModel):
    """Authenticated caller passed explicitly into every workflow operation."""

    id: UUID = Field(..., description="User id (token subject)")
    name: Optional[str] = Field(default=None, description="Display name, if present in the token")
    roles: FrozenSet[str] = Field(default_factory=frozenset, description="Role names")

    model_config = {"frozen": True}

    def has_any_role(self, *roles: str | Role) -> bool:
        wanted = {r.value if isinstance(r, Role) else r for r in roles}
        return not self.roles.isdisjoint(wanted)


# PUBLIC_INTERFACE
def create_access_token(
    subject: str,
    roles: Iterable[str] | None = None,
    name: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Create a signed access token.

    Tokens are normally issued by the external identity service; this helper
    exists for local tooling and tests that need a token the API accepts.
    """
    settings = get_app_settings()
    now = datetime.now(tz=timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {
        "sub": subject,
        "roles": list(roles or []),
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT; raises JWTError if invalid/expired."""
    settings = get_app_settings()
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# PUBLIC_INTERFACE
def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    """Build a Principal from decoded token claims; raises JWTError when the subject is unusable."""
    sub = claims.get("sub")
    if not sub:
        raise JWTError("Token has no subject")
    try:
        user_id = UUID(str(sub))
    except ValueError as exc:
        raise JWTError("Token subject is not a UUID") from exc
    roles = claims.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Principal(id=user_id, name=claims.get("name"), roles=frozenset(str(r) for r in roles))
