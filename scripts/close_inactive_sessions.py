from __future__ import annotations

import argparse
import logging
from datetime import timedelta

from drinkwise.config import Settings
from drinkwise.db import init_db
from drinkwise.logger import setup_logging
from drinkwise.services.inactivity import close_inactive_sessions

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="End drinking sessions left idle.")
    parser.add_argument("--dry-run", action="store_true", help="List sessions, do not close")
    parser.add_argument(
        "--idle-hours",
        type=float,
        default=None,
        help="Hours since the last drink (defaults to INACTIVITY_HOURS)",
    )
    args = parser.parse_args(argv)

    setup_logging()
    settings = Settings()
    idle_hours = args.idle_hours if args.idle_hours is not None else settings.inactivity_hours
    database = init_db(settings)
    try:
        with database.session() as db:
            closed = close_inactive_sessions(
                db, idle=timedelta(hours=idle_hours), dry_run=args.dry_run
            )
    finally:
        database.dispose()

    prefix = "[dry-run] " if args.dry_run else ""
    for session_id in closed:
        print(f"{prefix}closed session={session_id}")
    logger.info("%s%d idle sessions processed", prefix, len(closed))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
