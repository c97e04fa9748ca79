"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/users/login          -- password login; returns profile + token
  POST /api/v1/users/register       -- create account; returns profile + token
  POST /api/v1/users/refresh        -- exchange a valid token for a fresh one
  GET  /api/v1/users/me             -- identity attached to the request + profile
  PUT  /api/v1/users/me/password    -- replace the caller's password
  GET  /api/v1/csrf-token           -- current CSRF token for the SPA

Security:
  [R1] login and register are rate-limited per IP (Settings.auth_rate_limit).
  [C1] AuthService.login() equalizes timing and merges unknown-email and
       wrong-password into InvalidCredentials -- never inline the lookup.
  [R2] Cache-Control: no-store on every response that carries a token.
  CSRF is enforced by api/security.py before these handlers run.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import auth_limit, limiter
from api.models import (
    AuthResponse,
    CsrfTokenResponse,
    LoginRequest,
    MeResponse,
    PasswordChange,
    RegisterRequest,
    TokenResponse,
    UserProfile,
)
from auth.dependencies import get_auth_service, get_identity
from auth.models import AuthResult, IdentityContext
from auth.service import AuthService, extract_bearer_token

# Auth policy:
# - POST /users/login, /users/register:  public, rate limited
# - GET  /csrf-token:                    public
# - POST /users/refresh:                 bearer token (validated inside)
# - GET  /users/me, PUT /users/me/password: requires auth (get_identity)
router = APIRouter()


def _auth_response(result: AuthResult, service: AuthService) -> AuthResponse:
    return AuthResponse(**result.profile, token=result.token, expires_in=service.tokens.expire_seconds)


@limiter.limit(auth_limit)  # [R1] must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/login", response_model=AuthResponse)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same 401 invalid_credentials for an unknown email and for a
    wrong password.
    """
    result = await service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [R2]
    return _auth_response(result, service)


@limiter.limit(auth_limit)  # [R1]
@router.post("/users/register", response_model=AuthResponse, status_code=201)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and sign the new user in.

    400 email_in_use when the address is taken; nothing is written then.
    403 forbidden for an admin roleId, 400 invalid_role for an unknown one.
    """
    result = await service.register(**body.account_fields())
    response.headers["Cache-Control"] = "no-store"  # [R2]
    return _auth_response(result, service)


@router.post("/users/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Re-issue the presented bearer token with a fresh 24h window."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    new_token = service.refresh(token)
    response.headers["Cache-Control"] = "no-store"  # [R2]
    return TokenResponse(token=new_token, expires_in=service.tokens.expire_seconds)


@router.get("/users/me", response_model=MeResponse)
async def me(
    identity: IdentityContext = Depends(get_identity),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    return MeResponse(
        user_id=identity.user_id,
        role_id=identity.role_id,
        email=identity.email,
        profile=UserProfile(**service.get_profile(identity.user_id)),
    )


@router.put("/users/me/password", status_code=204)
async def change_password(
    body: PasswordChange,
    identity: IdentityContext = Depends(get_identity),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Replace the caller's password. 401 invalid_credentials if current_password is wrong."""
    await service.change_password(identity.user_id, body.current_password, body.new_password)
    return Response(status_code=204)


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def csrf_token(request: Request) -> CsrfTokenResponse:
    """Return the CSRF token the client must echo in X-CSRF-Token.

    The same value is set as the csrf_token cookie by the CSRF middleware.
    Empty when CSRF protection is disabled.
    """
    return CsrfTokenResponse(token=getattr(request.state, "csrf_token", None) or "")
