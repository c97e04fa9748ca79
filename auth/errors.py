"""
auth/errors.py -- Error taxonomy for the credential and session pipeline.

Every failure the auth layer can report to a caller is one of these classes.
Each carries the HTTP status and the machine-readable code the API layer
puts in its error envelope, so route handlers never translate by hand.

Oracle rules:
  InvalidCredentials covers BOTH unknown email and wrong password. Callers
  cannot tell which check failed.
  InvalidOrExpiredToken covers every token failure (bad signature, wrong
  issuer/audience, expiry, garbage input) with one fixed message.
  InternalFailure never carries the underlying exception text; the cause is
  logged server-side and chained via __cause__ only.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for user-facing auth failures."""

    status_code: int = 400
    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidCredentials(AuthError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password."


class EmailAlreadyInUse(AuthError):
    status_code = 400
    code = "email_in_use"
    message = "This email is already used by another account."


class AuthenticationRequired(AuthError):
    status_code = 401
    code = "authentication_required"
    message = "Authentication required."


class InvalidOrExpiredToken(AuthError):
    status_code = 401
    code = "invalid_token"
    message = "Invalid or expired token."


class PermissionDenied(AuthError):
    status_code = 403
    code = "forbidden"
    message = "Insufficient rights to access this resource."


class AccountNotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "User not found."


class InvalidRole(AuthError):
    status_code = 400
    code = "invalid_role"
    message = "Unknown role."


class InternalFailure(AuthError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
