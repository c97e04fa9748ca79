#!/usr/bin/env python3
"""
HomeTracker -- account administration CLI.

Usage:
  python main.py list-roles
  python main.py create-role "Gardener"
  python main.py list-users
  python main.py create-user --email a@b.test --first-name Ada --last-name Lovelace --role-id 3
  python main.py reset-db --yes
  python main.py hash-password

Environment variables:
  DATABASE_URL         SQLAlchemy URL of the account database (default sqlite:///hometracker.db)
  PASSWORD_ITERATIONS  PBKDF2 iteration count for new password records (default 10000)

Passwords are read with getpass when not supplied, so they never land in
shell history.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyInUse
from auth.models import Role, User
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings


def _read_password(supplied: Optional[str]) -> str:
    if supplied:
        return supplied
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def cmd_list_roles(store: UserStore, args: argparse.Namespace) -> int:
    roles = store.list_roles()
    for role in roles:
        print(f"  {role.id:>3}  {role.name}")
    print(f"\n  {len(roles)} role(s).")
    return 0


def cmd_create_role(store: UserStore, args: argparse.Namespace) -> int:
    try:
        role_id = store.create_role(Role(name=args.name, id=args.id))
    except IntegrityError:
        print(f"  [!] A role named '{args.name}' (or with that id) already exists.")
        return 1
    print(f"  Role created: {role_id}  {args.name}")
    return 0


def cmd_list_users(store: UserStore, args: argparse.Namespace) -> int:
    users = store.list_users()
    for user in users:
        profile = user.to_profile()
        print(
            f"  {profile['id']:>4}  {profile['email']:<40} role={profile['role_id']}  "
            f"{profile['first_name']} {profile['last_name']}"
        )
    print(f"\n  Total users: {len(users)}")
    return 0


def cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    settings = get_settings()
    password = _read_password(args.password)
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1
    role_id = args.role_id or settings.default_role_id
    if store.get_role(role_id) is None:
        print(f"  [!] No role with id {role_id}. Run list-roles to see the available ids.")
        return 1
    user = User(
        email=args.email,
        first_name=args.first_name,
        last_name=args.last_name,
        username=args.username,
        role_id=role_id,
        password=hash_password(password, settings.password_iterations),
    )
    try:
        user_id = store.insert_user(user)
    except EmailAlreadyInUse:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    print(f"  User created: id={user_id} email={args.email} role={user.role_id}")
    return 0


def cmd_reset_db(store: UserStore, args: argparse.Namespace) -> int:
    if not args.yes:
        print("  [!] This deletes every user and role. Re-run with --yes to confirm.")
        return 1
    store.reset()
    print(f"  Database reset. {len(store.list_roles())} default roles recreated.")
    return 0


def cmd_hash_password(store: UserStore, args: argparse.Namespace) -> int:
    print(hash_password(_read_password(args.password), get_settings().password_iterations))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hometracker",
        description="Administer HomeTracker accounts and roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("list-roles", help="List all roles")
    p.set_defaults(func=cmd_list_roles)

    p = sub.add_parser("create-role", help="Create a role")
    p.add_argument("name", help="Role name (unique)")
    p.add_argument("--id", type=int, default=None, help="Explicit role id")
    p.set_defaults(func=cmd_create_role)

    p = sub.add_parser("list-users", help="List all users")
    p.set_defaults(func=cmd_list_users)

    p = sub.add_parser("create-user", help="Create a user with a PBKDF2 password")
    p.add_argument("--email", required=True)
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", required=True)
    p.add_argument("--username", default=None)
    p.add_argument("--role-id", type=int, default=None, help="Role id (default: DEFAULT_ROLE_ID)")
    p.add_argument("--password", default=None, help="Password (prompted if omitted)")
    p.set_defaults(func=cmd_create_user)

    p = sub.add_parser("reset-db", help="Delete all users and roles, reseed default roles")
    p.add_argument("--yes", action="store_true", help="Confirm the destructive reset")
    p.set_defaults(func=cmd_reset_db)

    p = sub.add_parser("hash-password", help="Print a password record without touching the database")
    p.add_argument("--password", default=None, help="Password (prompted if omitted)")
    p.set_defaults(func=cmd_hash_password)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    store = UserStore(args.db or get_settings().database_url)
    try:
        return args.func(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
