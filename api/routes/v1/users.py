"""
api/routes/v1/users.py -- Account management REST endpoints.

Routes:
  GET    /api/v1/users          -- list accounts (admin only)
  POST   /api/v1/users          -- create an account with any role (admin only)
  GET    /api/v1/users/{id}     -- one account (requires auth)
  PUT    /api/v1/users/{id}     -- update profile fields (owner or admin)
  DELETE /api/v1/users/{id}     -- delete account (admin only)
  GET    /api/v1/roles          -- list roles (requires auth)

Profiles never include the credential field. Password changes go through
PUT /api/v1/users/me/password in api/routes/v1/auth.py, never through PUT
/users/{id}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import RoleResponse, UserCreate, UserProfile, UserUpdate
from auth.dependencies import get_auth_service, get_identity, require_admin, require_self_or_admin
from auth.models import IdentityContext
from auth.service import AuthService

router = APIRouter()


@router.get("/users", response_model=list[UserProfile])
async def list_users(
    identity: IdentityContext = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> list[UserProfile]:
    return [UserProfile(**p) for p in service.list_profiles()]


@router.post("/users", response_model=UserProfile, status_code=201)
async def create_user(
    body: UserCreate,
    identity: IdentityContext = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> UserProfile:
    """Create an account on someone's behalf. The password is hashed like any sign-up.

    Unlike /users/register, admin roles may be assigned here. No token is returned.
    """
    return UserProfile(**await service.create_account(**body.account_fields()))


@router.get("/users/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: int,
    identity: IdentityContext = Depends(get_identity),
    service: AuthService = Depends(get_auth_service),
) -> UserProfile:
    """Return one profile. 404 not_found if the id does not exist."""
    return UserProfile(**service.get_profile(user_id))


@router.put("/users/{user_id}", response_model=UserProfile)
async def update_user(
    user_id: int,
    body: UserUpdate,
    identity: IdentityContext = Depends(require_self_or_admin),
    service: AuthService = Depends(get_auth_service),
) -> UserProfile:
    """Apply the fields present in the body. Changing email to a taken one returns 400."""
    fields = body.model_dump(exclude_unset=True, exclude={"birth_date"})
    # Required columns cannot be cleared; an explicit null leaves them as they are.
    for required in ("last_name", "first_name", "email"):
        if fields.get(required, "") is None:
            del fields[required]
    if "birth_date" in body.model_fields_set:
        fields["birth_date"] = body.birth_date.isoformat() if body.birth_date else None
    return UserProfile(**service.update_profile(user_id, **fields))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    identity: IdentityContext = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    service.delete_account(user_id)
    return Response(status_code=204)


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(
    request: Request,
    identity: IdentityContext = Depends(get_identity),
) -> list[RoleResponse]:
    return [RoleResponse(id=r.id, name=r.name) for r in request.app.state.user_store.list_roles()]
