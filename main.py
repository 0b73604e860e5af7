#!/usr/bin/env python3
"""
TaskDesk -- administrative command line.

Role changes are an operator task, never self-service, so they live here
rather than behind an HTTP route.

Usage:
  python main.py seed-admin
  python main.py seed-admin --username root --email root@example.com --password 'S3cret!pass'
  python main.py grant-role alice Admin
  python main.py list-users

Environment variables:
  DATABASE_URL             Database to operate on (default: taskdesk.db beside this file)
  DEFAULT_ADMIN_USERNAME   Defaults for seed-admin
  DEFAULT_ADMIN_EMAIL
  DEFAULT_ADMIN_PASSWORD
"""

import argparse
import sys
from typing import Optional

from auth.models import KNOWN_ROLES
from auth.passwords import LockoutPolicy, PasswordPolicy
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.db import create_db_engine


def _identity_store(settings) -> IdentityStore:
    return IdentityStore(
        create_db_engine(settings.database_url),
        policy=PasswordPolicy.from_settings(settings),
        lockout=LockoutPolicy.from_settings(settings),
    )


def _seed_admin(args: argparse.Namespace, settings) -> int:
    password = args.password or settings.default_admin_password
    if not password:
        print("  [!] No admin password given. Use --password or set DEFAULT_ADMIN_PASSWORD.")
        return 2
    service = AuthService(_identity_store(settings), TokenIssuer.from_settings(settings))
    result = service.seed_admin(
        args.username or settings.default_admin_username,
        args.email or settings.default_admin_email,
        password,
    )
    if not result.is_success:
        print(f"  [!] {result.message}")
        return 1
    print(f"  {result.message}")
    return 0


def _grant_role(args: argparse.Namespace, settings) -> int:
    store = _identity_store(settings)
    identity = store.find_by_username(args.username)
    if identity is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    store.add_role(identity, args.role)
    print(f"  {identity.username} now holds: {', '.join(sorted(store.roles_of(identity)))}")
    return 0


def _list_users(args: argparse.Namespace, settings) -> int:
    identities = _identity_store(settings).list_identities()
    if not identities:
        print("  No users.")
        return 0
    width = max(len(i.username) for i in identities)
    for identity in identities:
        print(f"  {identity.username:<{width}}  {identity.email:<30}  {','.join(sorted(identity.roles))}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="taskdesk",
        description="TaskDesk administration: bootstrap the admin account and manage roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed-admin --password 'S3cret!pass'
  python main.py grant-role alice Admin
  python main.py list-users
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    seed = sub.add_parser("seed-admin", help="Create the admin account if it does not exist yet")
    seed.add_argument("--username", help="Admin username (default: DEFAULT_ADMIN_USERNAME)")
    seed.add_argument("--email", help="Admin email (default: DEFAULT_ADMIN_EMAIL)")
    seed.add_argument("--password", help="Admin password (default: DEFAULT_ADMIN_PASSWORD)")
    seed.set_defaults(handler=_seed_admin)

    grant = sub.add_parser("grant-role", help="Add a role to an existing user")
    grant.add_argument("username")
    grant.add_argument("role", choices=sorted(KNOWN_ROLES))
    grant.set_defaults(handler=_grant_role)

    users = sub.add_parser("list-users", help="Print every account with its roles")
    users.set_defaults(handler=_list_users)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    return args.handler(args, get_settings())


if __name__ == "__main__":
    sys.exit(main())
