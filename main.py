#!/usr/bin/env python3
"""
Knowledge base -- administrative command line.

Usage:
  python main.py create-admin --email admin@example.com --password 'S3cretPass'
  python main.py create-admin                      # uses ADMIN_EMAIL / ADMIN_PASSWORD
  python main.py search "reset password"
  python main.py search "reset password" --size 5 --json

Environment variables (or .env):
  DATABASE_URL    SQLAlchemy URL. Defaults to knowledgebase.db in the project root.
  ADMIN_EMAIL     Bootstrap admin email for create-admin.
  ADMIN_PASSWORD  Bootstrap admin password for create-admin.
  SECRET_KEY      Required unless DEBUG=true.
"""

import argparse
import json
import sys
from dataclasses import asdict

from auth.bootstrap import ensure_admin
from auth.store import UserStore
from core.config import get_settings
from core.database import Database
from core.errors import StoreError, ValidationError
from kb.search import SearchService


def _create_admin(db: Database, email: str, password: str) -> int:
    if not email or not password:
        print("  [!] Provide --email and --password, or set ADMIN_EMAIL and ADMIN_PASSWORD.")
        return 1
    try:
        user, created = ensure_admin(UserStore(db.users), email, password)
    except ValidationError as exc:
        for field, messages in exc.fields.items():
            print(f"  [!] {field}: {', '.join(messages)}")
        return 1
    if created:
        print(f"  Admin user {user.email} created.")
    else:
        print(f"  User {user.email} already exists (role: {user.role.value}). Nothing to do.")
    return 0


def _search(db: Database, query: str, size: int, as_json: bool) -> int:
    try:
        page = SearchService(db.articles).search(query, size=size)
    except ValidationError as exc:
        for field, messages in exc.fields.items():
            print(f"  [!] {field}: {', '.join(messages)}")
        return 1

    if as_json:
        print(json.dumps(asdict(page), indent=2))
        return 0

    print(f"\n  {page.total} match(es) for '{page.query}' in {page.took:.1f}ms\n")
    for result in page.results:
        print(f"  [{result.score:5.1f}] {result.subject}  ({result.product}, {result.date[:10]})")
    if page.total > len(page.results):
        print(f"\n  Showing {len(page.results)} of {page.total}. Use --size for more.")
    print()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="knowledgebase",
        description="Knowledge base administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@example.com --password 'S3cretPass'
  ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=S3cretPass python main.py create-admin
  python main.py search "printer offline" --size 3
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create the admin account if the email is not registered yet")
    admin.add_argument("--email", default=None, help="Admin email (default: ADMIN_EMAIL)")
    admin.add_argument("--password", default=None, help="Admin password, 8+ characters (default: ADMIN_PASSWORD)")

    search = sub.add_parser("search", help="Rank articles against a free-text query")
    search.add_argument("query", help="Search text")
    search.add_argument("--size", type=int, default=None, help="Maximum results to show")
    search.add_argument("--json", action="store_true", help="Output structured JSON")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()
    db = Database(settings.database_url)
    try:
        if args.command == "create-admin":
            return _create_admin(db, args.email or settings.admin_email, args.password or settings.admin_password)
        return _search(db, args.query, args.size, args.json)
    except StoreError:
        print("  [!] Database error. See log output for details.")
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
