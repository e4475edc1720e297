# src/techblog/scripts/manage.py
"""Developer management commands.

Usage:
    techblog-manage init-db
    techblog-manage create-user alice --first-name Alice --role admin
    techblog-manage issue-token alice
"""
from __future__ import annotations

import argparse
import sys

from sqlalchemy.exc import IntegrityError

from techblog.core.roles import ROLES, ROLE_MEMBER
from techblog.core.security import create_access_token
from techblog.db.session import SessionLocal, create_tables
from techblog.services import user_service


def _init_db(_args: argparse.Namespace) -> int:
    create_tables()
    print("Database initialized.")
    return 0


def _create_user(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        user = user_service.create_user(
            db,
            args.username,
            first_name=args.first_name,
            last_name=args.last_name,
            avatar=args.avatar,
            role=args.role,
        )
    except IntegrityError:
        db.rollback()
        print(f"User {args.username!r} already exists", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Created user {user.username} (id={user.id}, role={user.role})")
    return 0


def _issue_token(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        user = user_service.get_user_by_username(db, args.username)
    finally:
        db.close()
    if user is None:
        print(f"No user named {args.username!r}", file=sys.stderr)
        return 1
    print(create_access_token(user.id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="techblog-manage", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create all tables")
    init_db.set_defaults(func=_init_db)

    create_user = sub.add_parser("create-user", help="Create a user account")
    create_user.add_argument("username")
    create_user.add_argument("--first-name")
    create_user.add_argument("--last-name")
    create_user.add_argument("--avatar")
    create_user.add_argument("--role", choices=ROLES, default=ROLE_MEMBER)
    create_user.set_defaults(func=_create_user)

    issue_token = sub.add_parser("issue-token", help="Print a bearer token for a user")
    issue_token.add_argument("username")
    issue_token.set_defaults(func=_issue_token)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
