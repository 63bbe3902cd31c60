import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from uuid import UUID, uuid4

from content_lifecycle.adapters.clock import FixedClock
from content_lifecycle.adapters.sqlite.migrator import SQLiteMigrator
from content_lifecycle.adapters.sweep_runner import SweepScheduler
from content_lifecycle.app_shell.config import Settings, get_settings
from content_lifecycle.app_shell.wiring import Services, build_sqlite_services
from content_lifecycle.rules.loader import load_rules
from content_lifecycle.rules.models import Rules

logger = logging.getLogger("cli")


def get_rules(settings: Settings) -> Rules:
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)
    return load_rules(settings.rules_path)


def migrate(settings: Settings) -> list[str]:
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    migrator = SQLiteMigrator(settings.db_path, settings.migrations_dir)
    applied = migrator.run_migrations()
    migrator.verify_schema()
    return applied


def get_services(settings: Settings, now: datetime | None = None) -> Services:
    rules = get_rules(settings)
    migrate(settings)
    clock = FixedClock(now) if now else None
    return build_sqlite_services(settings.db_path, rules, clock=clock)


def _parse_now(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    applied = migrate(settings)
    print(f"Applied {len(applied)} migration(s) to {settings.db_path}.")


def handle_sweep(settings: Settings, args: argparse.Namespace) -> int:
    services = get_services(settings, _parse_now(args.now))
    summary = services.sweeper.sweep()
    print(json.dumps(summary.to_dict(), indent=2))
    return 1 if summary.total_errors and args.fail_on_error else 0


def handle_scheduler(settings: Settings, args: argparse.Namespace) -> None:
    services = get_services(settings)
    interval = args.interval or services.rules.scheduler.interval_seconds
    logger.info("Running sweep every %ss against %s (Ctrl-C to stop)", interval, settings.db_path)
    SweepScheduler(services.sweeper, interval).run_forever()


def handle_token(settings: Settings, args: argparse.Namespace) -> None:
    # Imported here so the other commands do not read the signing key.
    from content_lifecycle.api.auth_utils import create_access_token

    actor_id = UUID(args.actor_id) if args.actor_id else uuid4()
    roles = args.role or ["editor"]
    token = create_access_token(actor_id, roles)
    print(f"Actor: {actor_id}")
    print(f"Roles: {', '.join(roles)}")
    print(f"Token: {token}")


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = argparse.ArgumentParser(description="Content Lifecycle CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # sweep
    sweep_parser = subparsers.add_parser("sweep", help="Publish due scheduled content once")
    sweep_parser.add_argument("--now", help="Override the current time (ISO-8601, UTC if naive)")
    sweep_parser.add_argument(
        "--fail-on-error", action="store_true", help="Exit 1 if any item failed"
    )

    # scheduler
    scheduler_parser = subparsers.add_parser("scheduler", help="Run the sweep loop in the foreground")
    scheduler_parser.add_argument("--interval", type=float, help="Seconds between sweeps")

    # token
    token_parser = subparsers.add_parser("token", help="Mint a development bearer token")
    token_parser.add_argument("--actor-id", help="Actor UUID (random if omitted)")
    token_parser.add_argument(
        "--role", action="append", default=[], help="Role to grant (repeatable)"
    )

    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "migrate":
        handle_migrate(settings, args)
    elif args.command == "sweep":
        return handle_sweep(settings, args)
    elif args.command == "scheduler":
        handle_scheduler(settings, args)
    elif args.command == "token":
        handle_token(settings, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
