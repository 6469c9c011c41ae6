"""API key authentication and role/scope authorization."""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxdesk.config import settings
from taxdesk.database import get_db
from taxdesk.models.tenant import User


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
    VIEWER = "viewer"


class Scope(str, Enum):
    TAXES = "taxes"
    SYSTEM_ADMIN = "system-admin"


ALL_ROLES = (Role.ADMIN, Role.MANAGER, Role.USER, Role.VIEWER)
WRITE_ROLES = (Role.ADMIN, Role.MANAGER)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller - every tenant-scoped query uses tenant_id from here."""

    user_id: str
    tenant_id: str
    role: Role
    scopes: frozenset[str] = field(default_factory=frozenset)

    def has_scope(self, scope: Scope) -> bool:
        return scope.value in self.scopes or Scope.SYSTEM_ADMIN.value in self.scopes


API_KEY_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


def hash_api_key(api_key: str) -> str:
    """Hash API key with salt for storage/lookup."""
    return hashlib.sha256(
        f"{settings.api_key_hash_salt}:{api_key}".encode()
    ).hexdigest()


async def get_principal_from_bearer(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_header: str | None = Depends(API_KEY_HEADER),
) -> Principal:
    """Extract user and tenant from Bearer token (API key)."""
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )
    api_key = auth_header[7:].strip()
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
        )
    result = await db.execute(
        select(User).where(User.api_key_hash == hash_api_key(api_key))
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )
    return Principal(
        user_id=str(user.user_id),
        tenant_id=str(user.tenant_id),
        role=Role(user.role),
        scopes=frozenset(user.scopes or []),
    )


def require_access(roles: tuple[Role, ...], scope: Scope = Scope.TAXES):
    """Dependency factory: caller must hold one of roles and the scope."""

    async def check(
        principal: Annotated[Principal, Depends(get_principal_from_bearer)],
    ) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        if not principal.has_scope(scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing scope: {scope.value}",
            )
        return principal

    return check


# Type aliases for dependency injection
ReaderDep = Annotated[Principal, Depends(require_access(ALL_ROLES))]
WriterDep = Annotated[Principal, Depends(require_access(WRITE_ROLES))]
AdminDep = Annotated[Principal, Depends(require_access((Role.ADMIN,)))]
