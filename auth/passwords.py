"""
auth/passwords.py -- Password codec: hashing and verification.

Two stored formats exist and both must keep verifying:

  Current:  "<iterations>:<saltHex>:<hashHex>"
            PBKDF2-HMAC-SHA512, 16 random salt bytes (hex encoded; the hex
            string itself is the PBKDF2 salt input), 64-byte derived key.
            Every new record is written this way.

  Legacy:   a bare 64-char hex SHA-256 digest of the password, no salt.
            Rows written before the PBKDF2 migration. Verified only; never
            produced for new records.

The format is decided by parse_stored_hash(), a pure function returning a
tagged union. Nothing else sniffs the stored string. A ":" anywhere means the
PBKDF2 branch; a legacy hex digest can never contain one.

Failure policy: verify_password() returns False on ANY problem -- wrong
password, malformed record, derivation error. It never raises, so a broken
row is indistinguishable from a wrong password to the caller.

The derivation is deliberately slow. hash_password_async() and
verify_password_async() run it in the worker thread pool so request handlers
on the event loop stay responsive and concurrent logins do not serialize.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Union

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger("hometracker.auth")

DEFAULT_ITERATIONS = 10000
SALT_BYTES = 16
KEY_LENGTH = 64
DIGEST = "sha512"

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_LEGACY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


# ---------------------------------------------------------------------------
# Stored representation (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LegacyDigest:
    digest: str


@dataclass(frozen=True)
class Pbkdf2Hash:
    iterations: int
    salt: str
    hash: str

    def serialize(self) -> str:
        return f"{self.iterations}:{self.salt}:{self.hash}"


@dataclass(frozen=True)
class MalformedHash:
    reason: str


StoredHash = Union[LegacyDigest, Pbkdf2Hash, MalformedHash]


def parse_stored_hash(stored: str | None) -> StoredHash:
    """Classify a stored credential string without touching any password."""
    if not stored:
        return MalformedHash("empty")
    if ":" not in stored:
        candidate = stored.strip()
        if _LEGACY_RE.match(candidate):
            return LegacyDigest(candidate.lower())
        return MalformedHash("not a legacy digest")

    parts = stored.split(":")
    if len(parts) != 3:
        return MalformedHash("expected iterations:salt:hash")
    raw_iterations, salt, digest = parts
    if not raw_iterations.isdigit():
        return MalformedHash("iterations is not a positive integer")
    iterations = int(raw_iterations)
    if iterations < 1:
        return MalformedHash("iterations is not a positive integer")
    if not salt or not _HEX_RE.match(salt):
        return MalformedHash("salt is not hex")
    if not digest or not _HEX_RE.match(digest):
        return MalformedHash("hash is not hex")
    return Pbkdf2Hash(iterations=iterations, salt=salt, hash=digest.lower())


# ---------------------------------------------------------------------------
# Hash / verify
# ---------------------------------------------------------------------------


def _derive(plain: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(DIGEST, plain.encode("utf-8"), salt.encode("utf-8"), iterations, KEY_LENGTH).hex()


def hash_password(plain: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Return a fresh "iterations:salt:hash" record for the plaintext password.

    A new random salt is drawn on every call, so hashing the same password
    twice yields two different records that both verify.
    """
    salt = secrets.token_hex(SALT_BYTES)
    return Pbkdf2Hash(iterations=iterations, salt=salt, hash=_derive(plain, salt, iterations)).serialize()


def verify_password(plain: str, stored: str | None) -> bool:
    """Return True if the plaintext password matches the stored record."""
    parsed = parse_stored_hash(stored)
    try:
        if isinstance(parsed, LegacyDigest):
            candidate = hashlib.sha256(plain.encode("utf-8")).hexdigest()
            return hmac.compare_digest(candidate, parsed.digest)
        if isinstance(parsed, Pbkdf2Hash):
            candidate = _derive(plain, parsed.salt, parsed.iterations)
            return hmac.compare_digest(candidate, parsed.hash)
    except (ValueError, TypeError, OverflowError) as exc:
        logger.warning("Password derivation failed: %s", type(exc).__name__)
        return False
    logger.warning("Unparseable credential record (%s)", parsed.reason)
    return False


async def hash_password_async(plain: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    return await run_in_threadpool(hash_password, plain, iterations)


async def verify_password_async(plain: str, stored: str | None) -> bool:
    return await run_in_threadpool(verify_password, plain, stored)
