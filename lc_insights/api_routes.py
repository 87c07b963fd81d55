"""
API routes for LeetCode Insights.
Defines dashboard, snapshot, history, insights, leaderboard and engine endpoints.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .cache import ResponseCache, response_cache
from .config import (
    HISTORY_DAYS_DEFAULT,
    HISTORY_DAYS_MIN,
    HISTORY_DAYS_MAX,
    INSIGHTS_DAYS_DEFAULT,
    INSIGHTS_DAYS_MIN,
    INSIGHTS_DAYS_MAX,
    LEADERBOARD_LIMIT_DEFAULT,
    LEADERBOARD_LIMIT_MAX,
    RECENT_SUBMISSIONS_LIMIT,
    normalize_username,
)
from .database import get_db
from .errors import NoSnapshotsError, StorageUnavailableError, UserNotFoundError, success_response
from .leaderboard import get_leaderboard, get_leaderboard_stats, get_user_rank, upsert_leaderboard_user
from .leetcode_client import LeetCodeClient, get_leetcode_client
from .schemas import ReadinessRequest, RecommendationRequest, VelocityRequest
from .scoring import ReadinessEngine
from .snapshots import get_snapshots, get_user_by_username, take_snapshot
from .validation import (
    clamp_range,
    parse_problem_counts,
    parse_snapshots,
    parse_tag_stats,
    require_username,
)

logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()

_engine = ReadinessEngine()


def get_engine() -> ReadinessEngine:
    """Dependency returning the shared scoring engine."""
    return _engine


def get_cache() -> ResponseCache:
    """Dependency returning the response cache."""
    return response_cache


@contextmanager
def storage_errors():
    """Translate database connectivity failures into a 503."""
    try:
        yield
    except OperationalError as e:
        logger.error(f"Snapshot storage error: {e}")
        raise StorageUnavailableError(str(e.orig) if e.orig else None)


# =============================================================================
# LEETCODE ENDPOINTS
# =============================================================================

@router.get("/leetcode/dashboard/{username}")
def get_dashboard(
    username: str,
    db: Session = Depends(get_db),
    client: LeetCodeClient = Depends(get_leetcode_client),
    engine: ReadinessEngine = Depends(get_engine),
    cache: ResponseCache = Depends(get_cache),
):
    """
    Live profile, recent accepted submissions and topic breakdown.

    Also records the user on the leaderboard; leaderboard failures never fail
    the request.
    """
    username = require_username(username)
    key = f"dashboard:{normalize_username(username)}"
    cached, hit = cache.get(key)
    if hit:
        return success_response(cached, cached=True)

    profile = client.fetch_user_profile(username)
    if profile is None:
        raise UserNotFoundError(username)
    recent = client.fetch_recent_accepted_submissions(username, RECENT_SUBMISSIONS_LIMIT)
    tag_stats = client.fetch_topic_tag_breakdown(username)

    try:
        upsert_leaderboard_user(db, profile.username, profile.solved)
    except Exception as e:
        db.rollback()
        logger.warning(f"Leaderboard update failed for {username} (non-fatal): {e}")

    data = {
        "profile": profile.to_dict(),
        "tier": engine.classify_tier(profile.solved.all),
        "recent_accepted": recent,
        "tags": [t.to_dict() for t in tag_stats],
        "meta": {
            "generated_at": engine.clock().isoformat(),
            "cache_ttl_seconds": cache.ttl_seconds,
        },
    }

    cache.set(key, data)
    return success_response(data, cached=False)


@router.post("/leetcode/snapshot/{username}")
def post_snapshot(
    username: str,
    db: Session = Depends(get_db),
    client: LeetCodeClient = Depends(get_leetcode_client),
    cache: ResponseCache = Depends(get_cache),
):
    """Take a snapshot now."""
    username = require_username(username)

    with storage_errors():
        user, snapshot, profile, tag_stats = take_snapshot(db, client, username)

    # New history changes velocity and recency
    cache.evict_prefix(f"insights:{user.username}:")

    return success_response({
        "username": user.username,
        "snapshot_id": snapshot.id,
        "captured_at": snapshot.captured_at.isoformat(),
        "solved": profile.solved.to_dict(),
        "tags_count": len(tag_stats),
    })


@router.get("/leetcode/history/{username}")
def get_history(
    username: str,
    days: int = Query(HISTORY_DAYS_DEFAULT, description="History window in days (1-365)"),
    db: Session = Depends(get_db),
    engine: ReadinessEngine = Depends(get_engine),
):
    """Snapshots in the window, oldest first."""
    username = require_username(username)
    days = clamp_range(days, HISTORY_DAYS_MIN, HISTORY_DAYS_MAX)

    with storage_errors():
        user = get_user_by_username(db, username)
        if user is None:
            raise NoSnapshotsError(username)
        snapshots = get_snapshots(db, user.id, days, engine.clock())

    return success_response({
        "username": user.username,
        "days": days,
        "snapshots": [s.to_dict() for s in snapshots],
    })


@router.get("/leetcode/insights/{username}")
def get_insights(
    username: str,
    days: int = Query(INSIGHTS_DAYS_DEFAULT, description="Velocity window in days (7-365)"),
    db: Session = Depends(get_db),
    client: LeetCodeClient = Depends(get_leetcode_client),
    engine: ReadinessEngine = Depends(get_engine),
    cache: ResponseCache = Depends(get_cache),
):
    """
    Readiness score, opportunity-cost recommendations and diagnostics.

    Live counts come from LeetCode, history from stored snapshots. Users
    without snapshots still get a (limited) score.
    """
    username = require_username(username)
    days = clamp_range(days, INSIGHTS_DAYS_MIN, INSIGHTS_DAYS_MAX)

    key = f"insights:{normalize_username(username)}:{days}"
    cached, hit = cache.get(key)
    if hit:
        return success_response(cached, cached=True)

    profile = client.fetch_user_profile(username)
    if profile is None:
        raise UserNotFoundError(username)
    tag_stats = client.fetch_topic_tag_breakdown(username)

    now = engine.clock()
    with storage_errors():
        user = get_user_by_username(db, profile.username)
        snapshots = get_snapshots(db, user.id, days, now) if user else []

    insights = engine.compute_insights(profile.solved, tag_stats, snapshots, now)
    last_snapshot_at = insights["last_snapshot_at"]

    data = {
        "profile": profile.to_dict(),
        "history": {
            "days": days,
            "snapshot_count": len(snapshots),
            "velocity": insights["velocity"].to_dict(),
            "last_snapshot_at": last_snapshot_at.isoformat() if last_snapshot_at else None,
        },
        "readiness": insights["readiness"].to_dict(),
        "diagnostics": {
            "breadth": insights["breadth"].to_dict(),
            "difficulty_ramp": insights["ramp"].to_dict(),
            "leverage_coverage_score": insights["coverage"].score,
            "note": (
                "Velocity is limited because you need at least 2 snapshots. Take one snapshot per day."
                if len(snapshots) < 2
                else "Velocity computed from your snapshots."
            ),
        },
        "recommendations": {
            "next_topics": [r.to_dict() for r in insights["recommendations"]],
            "principle": (
                "Ranked by opportunity cost: high interview leverage topics "
                "where your coverage is still low."
            ),
        },
        "meta": {
            "generated_at": now.isoformat(),
            "cache_ttl_seconds": cache.ttl_seconds,
        },
    }

    cache.set(key, data)
    return success_response(data, cached=False)


# =============================================================================
# LEADERBOARD ENDPOINTS
# =============================================================================

@router.get("/leaderboard")
def leaderboard(
    limit: int = Query(LEADERBOARD_LIMIT_DEFAULT, description="Number of users (1-500)"),
    db: Session = Depends(get_db),
):
    limit = clamp_range(limit, 1, LEADERBOARD_LIMIT_MAX)
    with storage_errors():
        return success_response(get_leaderboard(db, limit))


@router.get("/leaderboard/stats")
def leaderboard_stats(db: Session = Depends(get_db)):
    with storage_errors():
        return success_response(get_leaderboard_stats(db))


@router.get("/leaderboard/rank/{username}")
def leaderboard_rank(username: str, db: Session = Depends(get_db)):
    username = require_username(username)
    with storage_errors():
        return success_response(get_user_rank(db, username))


# =============================================================================
# ENGINE ENDPOINTS (caller-supplied data, no upstream fetch)
# =============================================================================

@router.post("/engine/readiness")
def compute_readiness(
    request: ReadinessRequest,
    engine: ReadinessEngine = Depends(get_engine),
):
    """Score caller-supplied counts, tags and snapshots."""
    profile = parse_problem_counts(request.profile)
    tag_stats = parse_tag_stats(request.tag_stats)
    snapshots = parse_snapshots(request.snapshots)

    insights = engine.compute_insights(profile, tag_stats, snapshots, request.now, request.top_n)
    return success_response({
        "readiness": insights["readiness"].to_dict(),
        "velocity": insights["velocity"].to_dict(),
        "breadth": insights["breadth"].to_dict(),
        "difficulty_ramp": insights["ramp"].to_dict(),
        "weighted_coverage": insights["coverage"].to_dict(),
        "recommendations": [r.to_dict() for r in insights["recommendations"]],
    })


@router.post("/engine/velocity")
def compute_velocity(request: VelocityRequest, engine: ReadinessEngine = Depends(get_engine)):
    snapshots = parse_snapshots(request.snapshots)
    return success_response(engine.compute_velocity(snapshots).to_dict())


@router.post("/engine/recommendations")
def compute_recommendations(
    request: RecommendationRequest,
    engine: ReadinessEngine = Depends(get_engine),
):
    tag_stats = parse_tag_stats(request.tag_stats)
    return success_response(
        [r.to_dict() for r in engine.compute_recommendations(tag_stats, request.top_n)]
    )


@router.get("/engine/tier")
def get_tier(
    total_solved: Optional[int] = Query(None, ge=0, description="Total solved problems"),
    engine: ReadinessEngine = Depends(get_engine),
):
    return success_response({"total_solved": total_solved, "tier": engine.classify_tier(total_solved)})
