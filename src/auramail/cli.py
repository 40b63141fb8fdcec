"""Command-line interface for AuraMail.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta

import structlog

from auramail import __version__
from auramail.anomaly.detector import format_anomaly_report
from auramail.config import Settings, get_settings
from auramail.exceptions import (
    AuraMailError,
    AuthenticationError,
    ConfigurationError,
    SyncInProgressError,
    ValidationError,
)
from auramail.gmail.auth import run_installed_app_flow
from auramail.services import Services, build_services
from auramail.utils import configure_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_REAUTH = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auramail", description="AuraMail placement mail ingestion")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Auth commands
    auth_parser = subparsers.add_parser("auth", help="Manage Gmail authorization")
    auth_sub = auth_parser.add_subparsers(dest="auth_command", required=True)
    login_parser = auth_sub.add_parser(
        "login",
        help="Authorize Gmail in a local browser and store the tokens",
    )
    login_parser.add_argument("--user", required=True, help="User ID the tokens belong to")

    # Sync
    sync_parser = subparsers.add_parser("sync", help="Ingest placement mail for a user")
    sync_parser.add_argument("--user", required=True, help="User ID to sync")
    sync_parser.add_argument(
        "--query",
        default=None,
        help="Gmail search query (default: settings gmail_default_query)",
    )

    # Review commands
    review_parser = subparsers.add_parser("review", help="Work the human review queue")
    review_sub = review_parser.add_subparsers(dest="review_command", required=True)

    list_parser = review_sub.add_parser("list", help="Show records awaiting review")
    list_parser.add_argument("--user", required=True, help="User ID")

    mark_parser = review_sub.add_parser("mark", help="Mark a record as reviewed")
    mark_parser.add_argument("--user", required=True, help="User ID")
    mark_parser.add_argument("--id", type=int, required=True, dest="record_id", help="Record ID")
    mark_parser.add_argument("--by", required=True, dest="reviewed_by", help="Reviewer name")

    # Retention
    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old, unimportant email copies")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: settings retention_days)",
    )

    return parser


def _cmd_auth_login(args: argparse.Namespace, services: Services) -> int:
    token = run_installed_app_flow(services.settings, args.user)
    services.token_provider.store_tokens(
        token.user_id,
        token.access_token,
        token.refresh_token,
        token.expiry_date,
    )
    print(f"Gmail authorized for user {args.user}")
    return EXIT_OK


async def _cmd_sync(args: argparse.Namespace, services: Services) -> int:
    access_token = services.token_provider.get_valid_access_token(args.user)
    result = await services.ingestor.sync(args.user, access_token, args.query)
    print(
        f"Saved: {result.saved}  Skipped: {result.skipped}  "
        f"Errors: {result.errors}  Total: {result.total}"
    )
    return EXIT_OK


def _cmd_review_list(args: argparse.Namespace, services: Services) -> int:
    records = services.repository.list_review_queue(args.user)
    if not records:
        print("Review queue is empty")
        return EXIT_OK

    for record in records:
        received = record.received_at.date().isoformat() if record.received_at else "(no date)"
        print(f"#{record.id}\t{received}\t{record.subject}")
        print(format_anomaly_report(record.anomaly))
    return EXIT_OK


def _cmd_review_mark(args: argparse.Namespace, services: Services) -> int:
    record = services.repository.mark_reviewed(args.user, args.record_id, args.reviewed_by)
    if record is None:
        print(f"No record #{args.record_id} for user {args.user}", file=sys.stderr)
        return EXIT_FAILURE
    print(f"Record #{record.id} marked reviewed by {record.reviewed_by}")
    return EXIT_OK


def _cmd_cleanup(args: argparse.Namespace, services: Services) -> int:
    days = args.days if args.days is not None else services.settings.retention_days
    if days < 1:
        raise ValidationError("--days must be a positive integer")
    deleted = services.repository.delete_expired_emails(datetime.now() - timedelta(days=days))
    print(f"Deleted {deleted} email(s) older than {days} days")
    return EXIT_OK


def _dispatch(parsed: argparse.Namespace, services: Services) -> int:
    if parsed.command == "auth" and parsed.auth_command == "login":
        return _cmd_auth_login(parsed, services)
    if parsed.command == "sync":
        return asyncio.run(_cmd_sync(parsed, services))
    if parsed.command == "review":
        if parsed.review_command == "list":
            return _cmd_review_list(parsed, services)
        if parsed.review_command == "mark":
            return _cmd_review_mark(parsed, services)
    if parsed.command == "cleanup":
        return _cmd_cleanup(parsed, services)

    logger.error("unknown_command", command=parsed.command)
    return EXIT_USAGE


def main(args: list[str] | None = None, *, settings: Settings | None = None) -> int:
    """Main entry point for the AuraMail CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.
        settings: Application settings. If None, uses default settings.

    Returns:
        Exit code (0 success, 1 failure, 2 invalid input or configuration,
        3 Gmail reauthorization required).
    """
    if args is None:
        args = sys.argv[1:]

    settings = settings or get_settings()
    configure_logging(settings)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    logger.info("auramail_started", version=__version__, command=parsed.command, debug=settings.debug)

    try:
        return _dispatch(parsed, build_services(settings))
    except AuthenticationError as e:
        print(f"Gmail reauthorization required: {e}. Run 'auramail auth login'.", file=sys.stderr)
        return EXIT_REAUTH
    except (ValidationError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except SyncInProgressError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AuraMailError as e:
        logger.error("command_failed", command=parsed.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
