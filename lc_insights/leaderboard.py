"""
Tier-based leaderboard for LeetCode Insights.

Every username looked up on the dashboard is upserted with its latest totals
and tier; ranks are by total solved.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import (
    TIER_BANDS,
    LEADERBOARD_MIN_USERS_FOR_TOP,
    LEADERBOARD_TOP_SIZE,
    normalize_username,
)
from .domain import ProblemCounts
from .models import LeaderboardUser
from .scoring import classify_tier, round_half_up

logger = logging.getLogger(__name__)

# Highest tier first
TIER_ORDER = [name for name, _, _ in reversed(TIER_BANDS)]


def upsert_leaderboard_user(db: Session, username: str, solved: ProblemCounts) -> LeaderboardUser:
    """Insert or refresh a user's totals and tier."""
    key = normalize_username(username)
    tier = classify_tier(solved.all)
    now = datetime.now(timezone.utc)

    row = db.query(LeaderboardUser).filter(LeaderboardUser.username == key).first()
    if row is None:
        row = LeaderboardUser(username=key, first_seen_at=now)
        db.add(row)

    row.total_solved = solved.all
    row.solved_easy = solved.easy
    row.solved_medium = solved.medium
    row.solved_hard = solved.hard
    row.tier = tier
    row.last_updated_at = now

    db.commit()
    db.refresh(row)
    logger.debug(f"Leaderboard upsert: {key} total={solved.all} tier={tier}")
    return row


def _count_users(db: Session) -> int:
    return db.query(func.count(LeaderboardUser.id)).scalar() or 0


def get_leaderboard(db: Session, limit: int) -> Dict[str, Any]:
    """Top users by total solved."""
    total_users = _count_users(db)
    rows = db.query(LeaderboardUser).order_by(
        LeaderboardUser.total_solved.desc(),
        LeaderboardUser.username.asc(),
    ).limit(limit).all()

    return {
        "total_users": total_users,
        "min_users_for_top": LEADERBOARD_MIN_USERS_FOR_TOP,
        "top_active": total_users >= LEADERBOARD_MIN_USERS_FOR_TOP,
        "leaderboard": [
            {
                "rank": idx + 1,
                "username": row.username,
                "total_solved": row.total_solved,
                "easy": row.solved_easy,
                "medium": row.solved_medium,
                "hard": row.solved_hard,
                "tier": row.tier,
                "joined_at": row.first_seen_at.isoformat() if row.first_seen_at else None,
            }
            for idx, row in enumerate(rows)
        ],
    }


def get_leaderboard_stats(db: Session) -> Dict[str, Any]:
    """User count, users still needed for the top list, and tier distribution."""
    total_users = _count_users(db)
    counts = dict(
        db.query(LeaderboardUser.tier, func.count(LeaderboardUser.id))
        .group_by(LeaderboardUser.tier)
        .all()
    )

    distribution: List[Dict[str, Any]] = [
        {"tier": tier, "count": counts[tier]}
        for tier in TIER_ORDER
        if tier in counts
    ]

    return {
        "total_users": total_users,
        "min_users_for_top": LEADERBOARD_MIN_USERS_FOR_TOP,
        "top_active": total_users >= LEADERBOARD_MIN_USERS_FOR_TOP,
        "users_needed": max(0, LEADERBOARD_MIN_USERS_FOR_TOP - total_users),
        "tier_distribution": distribution,
    }


def get_user_rank(db: Session, username: str) -> Dict[str, Any]:
    """
    Rank of one user: 1 + number of users with strictly more solved.

    Returns {"found": False} for usernames not on the leaderboard.
    """
    row = db.query(LeaderboardUser).filter(
        LeaderboardUser.username == normalize_username(username)
    ).first()
    if row is None:
        return {"found": False}

    ahead = db.query(func.count(LeaderboardUser.id)).filter(
        LeaderboardUser.total_solved > row.total_solved
    ).scalar() or 0
    rank = ahead + 1
    total_users = _count_users(db)
    gated = total_users >= LEADERBOARD_MIN_USERS_FOR_TOP

    return {
        "found": True,
        "username": row.username,
        "total_solved": row.total_solved,
        "tier": row.tier,
        "rank": rank,
        "total_users": total_users,
        "is_top": gated and rank <= LEADERBOARD_TOP_SIZE,
        "is_top10": gated and rank <= 10,
        "percentile": int(round_half_up((1 - rank / total_users) * 100, 0)),
    }
