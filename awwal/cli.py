"""
Awwal command line - inspect and update learner progress.

Usage:
    awwal status
    awwal complete LEVEL LESSON [--score 90]
    awwal check LEVEL LESSON
    awwal login EMAIL
    awwal register EMAIL [--name NAME]
    awwal logout
    awwal sync
    awwal review
"""

import argparse
import getpass
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from awwal.classroom import (
    AuthError,
    AuthSession,
    HttpProgressClient,
    ProgressService,
    SQLiteStorage,
    SystemClock,
    due_for_review,
)
from awwal.utils import Settings, load_settings


def build_session(settings: Settings) -> tuple[AuthSession, ProgressService]:
    """Wire storage, client, auth and progress service from settings."""
    storage = SQLiteStorage(settings.db_path)
    client = HttpProgressClient(settings.api_url, timeout=settings.timeout_seconds)
    service = ProgressService(storage, client, clock=SystemClock(settings.timezone))
    auth = AuthSession(client, storage)
    return auth, service


def _wait(future) -> None:
    if future is not None:
        result = future.result()
        if not result.ok:
            print(f"Server sync failed ({result.error}); progress kept locally.")


def print_status(service: ProgressService, auth: AuthSession):
    stats = service.stats()
    who = auth.user.email if auth.is_authenticated else "guest"
    print(f"Learner: {who}")
    print(f"Lessons completed: {stats['completed']}")
    print(f"Streak: {stats['streak_days']} day(s)")
    print(f"Last activity: {stats['last_activity_date'] or 'never'}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Track lesson completion and streaks"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: ~/.awwal/config.yaml)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show progress summary")

    complete = sub.add_parser("complete", help="Mark a lesson completed")
    complete.add_argument("level_id")
    complete.add_argument("lesson_id")
    complete.add_argument("--score", type=float, default=None)

    check = sub.add_parser("check", help="Check whether a lesson is completed")
    check.add_argument("level_id")
    check.add_argument("lesson_id")

    login = sub.add_parser("login", help="Sign in and merge server progress")
    login.add_argument("email")

    register = sub.add_parser("register", help="Create an account")
    register.add_argument("email")
    register.add_argument("--name", default=None)

    sub.add_parser("logout", help="Sign out and clear local progress")
    sub.add_parser("sync", help="Reload and reconcile with the server")
    sub.add_parser("review", help="List lessons due for review")

    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    auth, service = build_session(settings)
    try:
        if args.command not in ("login", "register") and auth.restore():
            _wait(service.attach(auth))

        if args.command == "status":
            print_status(service, auth)

        elif args.command == "complete":
            _wait(service.complete_lesson(args.level_id, args.lesson_id, args.score))
            print(f"Completed {args.level_id}/{args.lesson_id}")
            print_status(service, auth)

        elif args.command == "check":
            done = service.is_completed(args.level_id, args.lesson_id)
            print("completed" if done else "not completed")
            return 0 if done else 1

        elif args.command in ("login", "register"):
            service.attach(auth)
            password = getpass.getpass("Password: ")
            try:
                if args.command == "login":
                    auth.login(args.email, password)
                else:
                    auth.register(args.email, password, args.name)
            except AuthError as e:
                print(f"Error: {e.message}", file=sys.stderr)
                return 1
            # attach() subscribed the service, so the sign-in queued a reconcile
            service.close()
            print_status(service, auth)

        elif args.command == "logout":
            auth.logout()
            print("Signed out.")

        elif args.command == "sync":
            if not auth.is_authenticated:
                print("Not signed in; nothing to sync.")
            else:
                _wait(service.refresh())
                print_status(service, auth)

        elif args.command == "review":
            due = due_for_review(service.progress, service.clock)
            if not due:
                print("Nothing due for review.")
            for entry in due:
                when = datetime.fromtimestamp(entry.next_review_at / 1000)
                print(f"{entry.level_id}/{entry.lesson_id} (due {when:%Y-%m-%d %H:%M})")
    finally:
        service.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
