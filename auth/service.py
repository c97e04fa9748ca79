"""
auth/service.py -- Authentication flow: login, register, authenticate, refresh.

AuthService orchestrates the account store, the password codec and the token
service. It is framework-agnostic: it raises auth.errors exceptions and the
API layer maps them to HTTP responses.

Login is constant-shape [C1]:
  Unknown email and wrong password raise the same InvalidCredentials. For an
  unknown email the codec still runs against a dummy record with the same
  iteration count, so response time does not reveal whether the account
  exists.

Store failures:
  Any SQLAlchemyError is logged with its traceback and re-raised as
  InternalFailure. The client only ever sees the generic message.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import (
    AccountNotFound,
    AuthenticationRequired,
    EmailAlreadyInUse,
    InternalFailure,
    InvalidCredentials,
    InvalidRole,
    PermissionDenied,
)
from auth.models import AuthResult, IdentityContext, TokenClaims, User
from auth.passwords import DEFAULT_ITERATIONS, hash_password, hash_password_async, verify_password_async
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("hometracker.auth")

T = TypeVar("T")


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an "Authorization: Bearer <token>" header value.

    Raises AuthenticationRequired when the header is missing or not exactly
    two space-separated parts with the literal "Bearer" scheme.
    """
    if not authorization:
        raise AuthenticationRequired()
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise AuthenticationRequired()
    return parts[1]


class AuthService:
    """Credential and session operations for HomeTracker accounts.

    Usage:
        service = AuthService(UserStore(url), TokenService(config))
        result = await service.login("a@b.test", "secret")
        identity = service.authenticate(f"Bearer {result.token}")
    """

    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        iterations: int = DEFAULT_ITERATIONS,
        default_role_id: int = 1,
        admin_role_ids: Iterable[int] = (2, 3),
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.iterations = iterations
        self.default_role_id = default_role_id
        self.admin_role_ids = frozenset(admin_role_ids)
        # Timing equalization record for unknown emails [C1].
        self._dummy_hash = hash_password("hometracker_timing_dummy", iterations)

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def _store_call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Account store failure in %s", getattr(fn, "__name__", "store call"))
            raise InternalFailure() from exc

    def _require_user(self, user_id: int) -> User:
        user = self._store_call(self.store.get_by_id, user_id)
        if user is None:
            raise AccountNotFound()
        return user

    def _issue_for(self, user: User) -> str:
        return self.tokens.issue(TokenClaims(user_id=user.id, role_id=user.role_id, email=user.email.strip()))

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        user = self._store_call(self.store.find_by_email, email)
        if user is None:
            await verify_password_async(password, self._dummy_hash)
            logger.info("Login failed: unknown account")
            raise InvalidCredentials()
        if not await verify_password_async(password, user.password):
            logger.info("Login failed: bad password for user id=%s", user.id)
            raise InvalidCredentials()
        logger.info("Login succeeded for user id=%s", user.id)
        return AuthResult(profile=user.to_profile(), token=self._issue_for(user))

    async def _create_user(
        self, email: str, password: str, last_name: str, first_name: str, role_id: int | None, profile: dict
    ) -> User:
        if self._store_call(self.store.find_by_email, email) is not None:
            raise EmailAlreadyInUse()
        role_id = role_id or self.default_role_id
        if self._store_call(self.store.get_role, role_id) is None:
            raise InvalidRole()
        stored_hash = await hash_password_async(password, self.iterations)
        user = User(
            email=email,
            last_name=last_name,
            first_name=first_name,
            password=stored_hash,
            role_id=role_id,
            **profile,
        )
        return self._require_user(self._store_call(self.store.insert_user, user))

    async def register(
        self,
        *,
        email: str,
        password: str,
        last_name: str,
        first_name: str,
        role_id: int | None = None,
        **profile,
    ) -> AuthResult:
        """Self-service sign-up: create an account and return its profile with a fresh token.

        Extra keyword arguments are optional profile fields (username, phone,
        birth_date, description, house_id). A taken email raises
        EmailAlreadyInUse and writes nothing. Admin roles cannot be chosen
        here (PermissionDenied); an unknown role raises InvalidRole.
        """
        if role_id in self.admin_role_ids:
            logger.warning("Registration refused: self-assigned admin role_id=%s", role_id)
            raise PermissionDenied()
        created = await self._create_user(email, password, last_name, first_name, role_id, profile)
        logger.info("Registered user id=%s role_id=%s", created.id, created.role_id)
        return AuthResult(profile=created.to_profile(), token=self._issue_for(created))

    async def create_account(
        self,
        *,
        email: str,
        password: str,
        last_name: str,
        first_name: str,
        role_id: int | None = None,
        **profile,
    ) -> dict:
        """Administrator path: create an account with any existing role and return its profile.

        No token is issued; the new user signs in with the password they were given.
        """
        created = await self._create_user(email, password, last_name, first_name, role_id, profile)
        logger.info("Account created by administrator: id=%s role_id=%s", created.id, created.role_id)
        return created.to_profile()

    def authenticate(self, authorization: str | None) -> IdentityContext:
        """Turn an Authorization header value into a verified identity."""
        token = extract_bearer_token(authorization)
        return self.tokens.verify(token).to_identity()

    def refresh(self, token: str) -> str:
        return self.tokens.refresh(token)

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """Replace the Credential Record after re-checking the current password."""
        user = self._require_user(user_id)
        if not await verify_password_async(current_password, user.password):
            logger.info("Password change refused for user id=%s", user_id)
            raise InvalidCredentials()
        stored_hash = await hash_password_async(new_password, self.iterations)
        self._store_call(self.store.update_password, user_id, stored_hash)
        logger.info("Password changed for user id=%s", user_id)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> dict:
        return self._require_user(user_id).to_profile()

    def list_profiles(self) -> list[dict]:
        return [u.to_profile() for u in self._store_call(self.store.list_users)]

    def update_profile(self, user_id: int, **fields) -> dict:
        if not self._store_call(self.store.update_user, user_id, **fields):
            raise AccountNotFound()
        return self.get_profile(user_id)

    def delete_account(self, user_id: int) -> None:
        if not self._store_call(self.store.delete_user, user_id):
            raise AccountNotFound()
        logger.info("Deleted user id=%s", user_id)
