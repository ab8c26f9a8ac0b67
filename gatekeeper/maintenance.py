"""Scheduled maintenance for the credential store.

Run as a separate process next to the API:

    python -m gatekeeper.maintenance          # sweep every CLEANUP_INTERVAL_HOURS
    python -m gatekeeper.maintenance --once   # single sweep, for cron
"""

import argparse
import asyncio
import logging
import time

import schedule

from gatekeeper.config import get_settings
from gatekeeper.database import SessionLocal, engine
from gatekeeper.exceptions import InfrastructureError
from gatekeeper.services.auth import AuthService
from gatekeeper.store import SQLAlchemyCredentialStore

logger = logging.getLogger("gatekeeper.maintenance")


async def cleanup_expired_tokens() -> int:
    """Delete expired password reset tokens. Returns the number removed."""
    try:
        async with SessionLocal() as db:
            service = AuthService(SQLAlchemyCredentialStore(db))
            return await service.cleanup_expired_tokens()
    finally:
        # Each run gets its own event loop; pooled connections must not outlive it.
        await engine.dispose()


def run_cleanup_job() -> int | None:
    """Run one sweep, logging instead of raising when the store is unavailable."""
    try:
        return asyncio.run(cleanup_expired_tokens())
    except InfrastructureError as e:
        logger.error("Token cleanup failed: %s", e.message)
        return None


def run_scheduler(interval_hours: int | None = None, poll_seconds: int = 60) -> None:
    """Run the sweep now and then on a fixed interval, forever."""
    hours = interval_hours or get_settings().CLEANUP_INTERVAL_HOURS
    schedule.every(hours).hours.do(run_cleanup_job)
    logger.info("Token cleanup scheduled every %d hours", hours)

    run_cleanup_job()
    while True:
        schedule.run_pending()
        time.sleep(poll_seconds)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Gatekeeper maintenance jobs")
    parser.add_argument("--once", action="store_true", help="run a single cleanup and exit")
    parser.add_argument("--interval-hours", type=int, default=None, help="override CLEANUP_INTERVAL_HOURS")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if args.once:
        run_cleanup_job()
    else:
        run_scheduler(args.interval_hours)


if __name__ == "__main__":
    main()
