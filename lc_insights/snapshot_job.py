"""Background job that snapshots every tracked user once a day."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from .config import SNAPSHOT_CRON
from .errors import UserNotFoundError
from .snapshots import list_tracked_usernames, take_snapshot

logger = logging.getLogger(__name__)


def parse_daily_cron(expr: str) -> Tuple[int, int]:
    """
    Parse a daily cron expression of the form "M H * * *".

    Returns:
        Tuple of (hour, minute), UTC

    Raises:
        ValueError: for any other cron shape
    """
    fields = expr.split()
    if len(fields) != 5 or fields[2:] != ["*", "*", "*"]:
        raise ValueError(f"Only daily 'M H * * *' schedules are supported, got '{expr}'")

    minute, hour = int(fields[0]), int(fields[1])
    if not (0 <= minute <= 59 and 0 <= hour <= 23):
        raise ValueError(f"Cron time out of range: '{expr}'")
    return hour, minute


def seconds_until_next_run(now: datetime, hour: int, minute: int) -> float:
    """Seconds from `now` to the next HH:MM UTC (strictly in the future)."""
    now = now.astimezone(timezone.utc)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


def run_snapshot_batch(session_factory: Callable, client) -> Tuple[int, int, int]:
    """
    Snapshot every tracked user in id order.

    A failure for one user is logged and the batch moves on.

    Returns:
        Tuple of (succeeded, skipped, failed); skipped = profile gone or private
    """
    db = session_factory()
    succeeded = skipped = failed = 0
    try:
        usernames = list_tracked_usernames(db)
        logger.info(f"[snapshot_job] Snapshotting {len(usernames)} tracked users")

        for username in usernames:
            try:
                take_snapshot(db, client, username)
                succeeded += 1
            except UserNotFoundError:
                logger.warning(f"[snapshot_job] Skipping {username}: not found or private")
                db.rollback()
                skipped += 1
            except Exception:
                logger.exception(f"[snapshot_job] Snapshot failed for {username}")
                db.rollback()
                failed += 1
    finally:
        db.close()

    logger.info(f"[snapshot_job] Done: {succeeded} stored, {skipped} skipped, {failed} failed")
    return succeeded, skipped, failed


async def start_snapshot_scheduler(
    session_factory: Callable,
    client,
    cron: str = SNAPSHOT_CRON,
    clock: Optional[Callable[[], datetime]] = None,
) -> None:
    """Long-running coroutine: sleep until the daily run time, then snapshot everyone."""
    hour, minute = parse_daily_cron(cron)
    clock = clock or (lambda: datetime.now(timezone.utc))
    logger.info(f"[snapshot_job] Scheduler started, daily at {hour:02d}:{minute:02d} UTC")

    while True:
        await asyncio.sleep(seconds_until_next_run(clock(), hour, minute))
        try:
            await asyncio.to_thread(run_snapshot_batch, session_factory, client)
        except Exception:
            logger.exception("[snapshot_job] Error in snapshot batch")
