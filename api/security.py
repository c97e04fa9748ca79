"""
api/security.py -- HTTP hardening middleware: security headers and CSRF.

Both are plain @app.middleware("http") coroutines registered by api/main.py.
They read their switches from request.app.state.settings at request time so
tests can flip them per client without rebuilding the app.

Security headers:
  Added to every response: nosniff, SAMEORIGIN framing, a self-only CSP,
  strict referrer policy and the legacy XSS filter header. HSTS is only sent
  when the request arrived over https.

CSRF (double-submit cookie):
  Every response carries the current token in the X-CSRF-Token header; a new
  token is minted (and set as the csrf_token cookie) only when the client does
  not already hold one. Unsafe methods (anything but GET/HEAD/OPTIONS) must
  echo the cookie value in the X-CSRF-Token request header. A missing or
  mismatched token is rejected with 403 before the route -- and therefore
  before any credential check -- runs.
"""

from __future__ import annotations

import hmac
import logging
import secrets

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse

logger = logging.getLogger("hometracker.api")

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
CSRF_MAX_AGE = 24 * 3600
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; connect-src 'self'; object-src 'none'; frame-src 'none'"
    ),
}


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if request.url.scheme == "https":
        response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
    return response


async def csrf_protect(request: Request, call_next):
    settings = request.app.state.settings
    if not settings.csrf_enabled:
        request.state.csrf_token = None
        return await call_next(request)

    cookie_token = request.cookies.get(CSRF_COOKIE)
    if request.method not in SAFE_METHODS:
        header_token = request.headers.get(CSRF_HEADER)
        if not cookie_token or not header_token or not hmac.compare_digest(cookie_token, header_token):
            logger.warning("CSRF check failed on %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=403,
                content=ErrorResponse(
                    error=ErrorDetail(code="csrf_failed", message="CSRF verification failed.")
                ).model_dump(),
            )

    # Exposed to GET /csrf-token so it can return the same value the cookie gets.
    token = cookie_token or generate_csrf_token()
    request.state.csrf_token = token
    response = await call_next(request)
    if not cookie_token:
        response.set_cookie(
            CSRF_COOKIE,
            value=token,
            httponly=True,
            samesite="strict",
            secure=settings.secure_cookies,
            max_age=CSRF_MAX_AGE,
            path="/",
        )
    response.headers[CSRF_HEADER] = token
    return response
