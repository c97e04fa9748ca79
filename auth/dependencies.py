"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_identity() is the identity-attachment step for protected routes: it reads
the Authorization header, verifies the bearer token through AuthService and
stores the resulting IdentityContext on request.state.identity for the rest
of the request.

require_admin() wraps get_identity() and raises PermissionDenied (403) when
the caller's role is not in Settings.admin_role_ids.

Both raise auth.errors exceptions rather than HTTPException; the exception
handler in api/main.py renders them with the shared error envelope.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the dependency injection system. No imports from api/.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request

from auth.errors import PermissionDenied
from auth.models import IdentityContext
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
    service: AuthService = Depends(get_auth_service),
) -> IdentityContext:
    """Require a valid bearer token. Raises AuthenticationRequired or InvalidOrExpiredToken.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: IdentityContext = Depends(get_identity)): ...
    """
    identity = service.authenticate(authorization)
    request.state.identity = identity
    return identity


def require_admin(request: Request, identity: IdentityContext = Depends(get_identity)) -> IdentityContext:
    """Require an admin role on top of authentication."""
    if identity.role_id not in request.app.state.settings.admin_role_ids:
        raise PermissionDenied()
    return identity


def require_self_or_admin(
    user_id: int, request: Request, identity: IdentityContext = Depends(get_identity)
) -> IdentityContext:
    """Allow the account owner or an admin. user_id comes from the path."""
    if identity.user_id != user_id and identity.role_id not in request.app.state.settings.admin_role_ids:
        raise PermissionDenied()
    return identity
