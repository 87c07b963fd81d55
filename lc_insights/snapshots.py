"""
Snapshot Store for LeetCode Insights.

Append-only persistence of solved-count snapshots and user resolution.
Reads return domain Snapshots ordered by captured_at ascending, ready for the
scoring engine.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import normalize_username
from .domain import Profile, ProblemCounts, Snapshot, TagStat
from .errors import UserNotFoundError
from .models import LcSnapshot, LcSnapshotTag, LcUser

logger = logging.getLogger(__name__)


def to_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def snapshot_from_row(row: LcSnapshot) -> Snapshot:
    return Snapshot(
        id=row.id,
        captured_at=to_utc(row.captured_at),
        solved=ProblemCounts(
            all=row.solved_all,
            easy=row.solved_easy,
            medium=row.solved_medium,
            hard=row.solved_hard,
        ),
    )


# =============================================================================
# USER RESOLUTION
# =============================================================================

def get_user_by_username(db: Session, username: str) -> Optional[LcUser]:
    """Look up a tracked user by (case-insensitive) username."""
    return db.query(LcUser).filter(LcUser.username == normalize_username(username)).first()


def ensure_user(db: Session, username: str) -> LcUser:
    """
    Resolve a username to its stable user row, creating it if absent.

    Idempotent: repeated calls return the same row. A concurrent insert of the
    same username loses to the unique constraint and resolves to the winner's row.
    """
    existing = get_user_by_username(db, username)
    if existing:
        return existing

    user = LcUser(username=normalize_username(username))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_user_by_username(db, username)
        if existing is None:
            raise
        logger.info(f"User {existing.username} was created concurrently (id={existing.id})")
        return existing
    db.refresh(user)
    logger.info(f"Tracking new user: {user.username} (id={user.id})")
    return user


def list_tracked_usernames(db: Session) -> List[str]:
    """All tracked usernames in id order."""
    return [u.username for u in db.query(LcUser).order_by(LcUser.id.asc()).all()]


# =============================================================================
# SNAPSHOTS
# =============================================================================

def insert_snapshot(
    db: Session,
    user_id: int,
    solved: ProblemCounts,
    tag_stats: Sequence[TagStat] = (),
    captured_at: Optional[datetime] = None,
) -> Snapshot:
    """
    Append a snapshot with its per-tag counts.

    Duplicate tag slugs within one call keep the last value.

    Args:
        db: Database session
        user_id: Tracked user's id
        solved: Solved counts to record
        tag_stats: Per-topic solved counts to record with the snapshot
        captured_at: Capture time (defaults to now, UTC)

    Returns:
        The stored Snapshot
    """
    row = LcSnapshot(
        user_id=user_id,
        captured_at=to_utc(captured_at or datetime.now(timezone.utc)),
        solved_all=solved.all,
        solved_easy=solved.easy,
        solved_medium=solved.medium,
        solved_hard=solved.hard,
    )
    db.add(row)
    db.flush()

    by_slug = {t.tag_slug: t for t in tag_stats}
    for t in by_slug.values():
        db.add(LcSnapshotTag(
            snapshot_id=row.id,
            tag_slug=t.tag_slug,
            tag_name=t.tag_name,
            solved=t.solved,
        ))

    db.commit()
    db.refresh(row)
    logger.info(f"Snapshot {row.id} stored for user {user_id}: {solved.all} solved, {len(by_slug)} tags")
    return snapshot_from_row(row)


def get_snapshots(
    db: Session,
    user_id: int,
    days: int,
    now: Optional[datetime] = None,
) -> List[Snapshot]:
    """
    Snapshots captured within the last `days` days, ascending by captured_at.
    """
    cutoff = to_utc(now or datetime.now(timezone.utc)) - timedelta(days=days)
    rows = db.query(LcSnapshot).filter(
        LcSnapshot.user_id == user_id,
        LcSnapshot.captured_at >= cutoff,
    ).order_by(LcSnapshot.captured_at.asc(), LcSnapshot.id.asc()).all()

    return [snapshot_from_row(r) for r in rows]


def get_snapshot_tags(db: Session, snapshot_id: int) -> List[TagStat]:
    """Tag counts recorded with a snapshot, by solved descending."""
    rows = db.query(LcSnapshotTag).filter(
        LcSnapshotTag.snapshot_id == snapshot_id
    ).order_by(LcSnapshotTag.solved.desc(), LcSnapshotTag.tag_slug.asc()).all()
    return [TagStat(tag_slug=r.tag_slug, tag_name=r.tag_name, solved=r.solved) for r in rows]


def take_snapshot(db: Session, client, username: str, captured_at: Optional[datetime] = None):
    """
    Fetch the live profile and topic breakdown, then store a snapshot.

    Args:
        db: Database session
        client: LeetCode client (profile + topic fetch)
        username: LeetCode username
        captured_at: Optional capture time override

    Returns:
        Tuple of (user row, stored Snapshot, profile, tag stats)

    Raises:
        UserNotFoundError: If the profile is missing or private
    """
    profile: Optional[Profile] = client.fetch_user_profile(username)
    if profile is None:
        raise UserNotFoundError(username)
    tag_stats = client.fetch_topic_tag_breakdown(username)

    user = ensure_user(db, profile.username)
    snapshot = insert_snapshot(db, user.id, profile.solved, tag_stats, captured_at)
    return user, snapshot, profile, tag_stats
