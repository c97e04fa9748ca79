"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and roles.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user / _row_to_role are the mappers. The service layer and routes
never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced by a UNIQUE index, not by a read-then-write
  check. insert_user() is therefore an atomic insert-if-absent: two
  concurrent registrations for the same address cannot both succeed, and the
  loser surfaces as EmailAlreadyInUse.

  The password column is only ever written by insert_user() and
  update_password(). update_user() rejects it by whitelist.

DB path: defaults to Settings.database_url (sqlite:///hometracker.db).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyInUse
from auth.models import USER_MUTABLE_FIELDS, Role, User

logger = logging.getLogger("hometracker.store")

_DEFAULT_DB_URL = "sqlite:///hometracker.db"

# Seed roles. Ids are part of the contract: default_role_id and
# admin_role_ids in Settings refer to them.
DEFAULT_ROLES: tuple[tuple[int, str], ...] = (
    (1, "No roles"),
    (2, "SuperAdmin"),
    (3, "Admin"),
    (4, "User"),
    (5, "Invite"),
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("last_name", String(255), nullable=False),
    Column("first_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # Credential Record, see auth/passwords.py
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("username", String(255)),
    Column("phone", String(50)),
    Column("birth_date", String(32)),
    Column("description", Text),
    Column("inscription_date", String(32), nullable=False),
    Column("house_id", Integer),
)


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Without foreign_keys=ON SQLite stores a
    role_id that names no role.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Role entities.

    Usage:
        store = UserStore("sqlite:///hometracker.db")
        uid = store.insert_user(User(email="a@b.test", last_name="A", first_name="B",
                                     password=hash_password("secret")))
        user = store.find_by_email("a@b.test")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)
        self.seed_default_roles()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def seed_default_roles(self) -> int:
        """Insert any missing DEFAULT_ROLES. Idempotent; returns rows inserted."""
        with self.engine.connect() as conn:
            existing = {row.id for row in conn.execute(select(_roles.c.id))}
            names = {row.name for row in conn.execute(select(_roles.c.name))}
            missing = [
                {"id": rid, "name": name} for rid, name in DEFAULT_ROLES if rid not in existing and name not in names
            ]
            if missing:
                conn.execute(_roles.insert(), missing)
                conn.commit()
        return len(missing)

    def create_role(self, role: Role) -> int:
        """Insert a role and return its id. IntegrityError if the name exists."""
        values = {"name": role.name}
        if role.id is not None:
            values["id"] = role.id
        with self.engine.connect() as conn:
            result = conn.execute(_roles.insert().values(**values))
            conn.commit()
            return result.inserted_primary_key[0]

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    def insert_user(self, user: User) -> int:
        """Insert a new account and return its id.

        Raises EmailAlreadyInUse if the email is taken. Nothing is written in
        that case -- the UNIQUE index rejects the whole statement. Any other
        constraint failure (an unknown role_id) propagates as IntegrityError.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        last_name=user.last_name,
                        first_name=user.first_name,
                        email=user.email,
                        password=user.password,
                        role_id=user.role_id,
                        username=user.username,
                        phone=user.phone,
                        birth_date=user.birth_date,
                        description=user.description,
                        inscription_date=user.inscription_date or _now_iso(),
                        house_id=user.house_id,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            if self.find_by_email(user.email) is not None:
                raise EmailAlreadyInUse() from exc
            raise

    def find_by_email(self, email: str) -> User | None:
        """Exact-match lookup by email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update profile fields on an existing account.

        Only names in USER_MUTABLE_FIELDS are accepted; anything else raises
        ValueError before SQL is built. Changing email to one already taken
        raises EmailAlreadyInUse.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - USER_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise EmailAlreadyInUse() from exc
        return result.rowcount > 0

    def update_password(self, user_id: int, stored_hash: str) -> bool:
        """Replace the Credential Record. stored_hash must already be hashed."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(password=stored_hash))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Delete every account and role, then reseed DEFAULT_ROLES."""
        with self.engine.connect() as conn:
            deleted_users = conn.execute(_users.delete()).rowcount
            deleted_roles = conn.execute(_roles.delete()).rowcount
            conn.commit()
        logger.warning("Store reset: %d users and %d roles deleted", deleted_users, deleted_roles)
        self.seed_default_roles()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        last_name=row.last_name,
        first_name=row.first_name,
        email=row.email,
        password=row.password,
        role_id=row.role_id,
        username=row.username,
        phone=row.phone,
        birth_date=row.birth_date,
        description=row.description,
        inscription_date=row.inscription_date,
        house_id=row.house_id,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
