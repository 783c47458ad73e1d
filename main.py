#!/usr/bin/env python3
"""
Inkpress -- operations CLI for users and service accounts.

Everything here talks to the same DATABASE_URL the API uses. Run it on the
server host; there is no network round-trip and no HTTP auth.

Usage:
  python main.py create-user --email admin@example.com --admin
  python main.py set-role --email writer@example.com --role ADMIN
  python main.py create-service-account --name ci-publisher --scope posts:read --scope posts:write \
      --created-by admin@example.com
  python main.py list-service-accounts
  python main.py revoke-service-account <id>
  python main.py delete-service-account <id>

Environment variables:
  DATABASE_URL   SQLAlchemy URL (default: sqlite file next to this script)
  SECRET_KEY     Required unless DEBUG=true (see core/config.py)
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth import service_accounts
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import AppError

_MIN_PASSWORD_LENGTH = 8
_MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def _read_password(given: Optional[str]) -> Optional[str]:
    """Use --password if given, otherwise prompt twice without echo."""
    if given is not None:
        return given
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm:  ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = _read_password(args.password)
    if password is None:
        return 1
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return 1
    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {_MAX_PASSWORD_BYTES} bytes.")
        return 1
    user = User(
        email=args.email,
        name=args.name,
        role=Role.ADMIN if args.admin else Role.READER,
        hashed_password=hash_password(password),
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    print(f"  Created {user.role.value} user {args.email} (id {user_id}).")
    return 0


def cmd_set_role(store: UserStore, args: argparse.Namespace) -> int:
    user = store.get_by_email(args.email)
    if user is None or user.id is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    new_role = Role(args.role)
    if user.role == Role.ADMIN and new_role != Role.ADMIN and store.count_admins() <= 1:
        print("  [!] Refusing to demote the last admin.")
        return 1
    store.update_role(user.id, new_role)
    print(f"  {args.email} is now {new_role.value}.")
    return 0


def cmd_create_service_account(store: UserStore, args: argparse.Namespace) -> int:
    creator = store.get_by_email(args.created_by)
    if creator is None or creator.id is None:
        print(f"  [!] No user with email '{args.created_by}'.")
        return 1
    if creator.role != Role.ADMIN:
        print(f"  [!] {args.created_by} is not an admin; service accounts act with their creator's role.")
        return 1
    account, token = service_accounts.create_service_account(
        store,
        name=args.name,
        description=args.description,
        scopes=args.scope,
        created_by_id=creator.id,
    )
    print(f"\n  Service account '{account.name}' created (id {account.id}).")
    print(f"  Scopes: {', '.join(account.scopes)}")
    print(f"\n  Token: {token}\n")
    print(f"  {service_accounts.TOKEN_WARNING}\n")
    return 0


def cmd_list_service_accounts(store: UserStore, args: argparse.Namespace) -> int:
    accounts = service_accounts.list_service_accounts(store)
    if not accounts:
        print("  No service accounts.")
        return 0
    for a in accounts:
        status = "REVOKED" if a.revoked else "active"
        last_used = a.last_used_at or "never"
        print(f"  {a.id}  {a.name:<24} {status:<8} last used: {last_used}  scopes: {','.join(a.scopes)}")
    return 0


def cmd_revoke_service_account(store: UserStore, args: argparse.Namespace) -> int:
    account = service_accounts.revoke_service_account(store, args.id)
    print(f"  Revoked service account '{account.name}' ({account.id}).")
    return 0


def cmd_delete_service_account(store: UserStore, args: argparse.Namespace) -> int:
    service_accounts.delete_service_account(store, args.id)
    print(f"  Deleted service account {args.id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkpress",
        description="Inkpress operations: manage users and service accounts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Available scopes: {', '.join(service_accounts.AVAILABLE_SCOPES)}",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("create-user", help="Create a user with a local password")
    p.add_argument("--email", required=True)
    p.add_argument("--name", default=None)
    p.add_argument("--admin", action="store_true", help="Create with the ADMIN role (default: READER)")
    p.add_argument("--password", default=None, help="Password (prompted if omitted)")
    p.set_defaults(func=cmd_create_user)

    p = sub.add_parser("set-role", help="Change a user's role")
    p.add_argument("--email", required=True)
    p.add_argument("--role", required=True, choices=[r.value for r in Role])
    p.set_defaults(func=cmd_set_role)

    p = sub.add_parser("create-service-account", help="Mint a service account token (shown once)")
    p.add_argument("--name", required=True)
    p.add_argument("--description", default=None)
    p.add_argument(
        "--scope",
        action="append",
        default=[],
        metavar="SCOPE",
        help="Scope to grant; repeat for several",
    )
    p.add_argument("--created-by", required=True, metavar="EMAIL", help="Email of the owning admin")
    p.set_defaults(func=cmd_create_service_account)

    p = sub.add_parser("list-service-accounts", help="List service accounts (never shows tokens)")
    p.set_defaults(func=cmd_list_service_accounts)

    p = sub.add_parser("revoke-service-account", help="Revoke a service account (irreversible)")
    p.add_argument("id")
    p.set_defaults(func=cmd_revoke_service_account)

    p = sub.add_parser("delete-service-account", help="Permanently delete a service account")
    p.add_argument("id")
    p.set_defaults(func=cmd_delete_service_account)

    return parser


def main(argv: Optional[list[str]] = None, store: Optional[UserStore] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    own_store = store is None
    store = store or UserStore()
    try:
        return args.func(store, args)
    except AppError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        if own_store:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
