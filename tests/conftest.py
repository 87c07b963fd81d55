"""
Test Configuration and Fixtures for LeetCode Insights.
"""

import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lc_insights.database import init_db, make_engine
from lc_insights.domain import Profile, ProblemCounts, Snapshot, TagStat


D0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_snapshot(total, at, snapshot_id=None, easy=0, medium=0, hard=0):
    """Snapshot with the given all-solved count at a timestamp."""
    return Snapshot(
        id=snapshot_id,
        captured_at=at,
        solved=ProblemCounts(all=total, easy=easy, medium=medium, hard=hard),
    )


class FakeLeetCodeClient:
    """In-memory stand-in for LeetCodeClient."""

    def __init__(self, profiles=None, tags=None, submissions=None, failing=()):
        self.profiles = {k.lower(): v for k, v in (profiles or {}).items()}
        self.tags = {k.lower(): v for k, v in (tags or {}).items()}
        self.submissions = submissions or {}
        self.failing = {u.lower() for u in failing}
        self.calls = []

    def fetch_user_profile(self, username):
        self.calls.append(("profile", username))
        if username.lower() in self.failing:
            raise RuntimeError(f"upstream exploded for {username}")
        return self.profiles.get(username.lower())

    def fetch_topic_tag_breakdown(self, username):
        self.calls.append(("tags", username))
        return list(self.tags.get(username.lower(), []))

    def fetch_recent_accepted_submissions(self, username, limit=20):
        self.calls.append(("recent", username))
        return list(self.submissions.get(username.lower(), []))[:limit]


@pytest.fixture
def fixed_now():
    """Evaluation time used across engine tests."""
    return D0 + timedelta(days=10)


@pytest.fixture
def scenario_profile():
    """Solved counts from the end-to-end readiness scenario."""
    return ProblemCounts(all=50, easy=20, medium=25, hard=5)


@pytest.fixture
def scenario_tags():
    """Tag breakdown from the end-to-end readiness scenario."""
    return [
        TagStat(tag_slug="dynamic-programming", tag_name="Dynamic Programming", solved=15),
        TagStat(tag_slug="arrays", tag_name="Array", solved=30),
    ]


@pytest.fixture
def scenario_snapshots():
    """Two snapshots ten days apart, 20 solves between them."""
    return [
        make_snapshot(30, D0, snapshot_id=1),
        make_snapshot(50, D0 + timedelta(days=10), snapshot_id=2),
    ]


@pytest.fixture
def sample_profile_payload():
    """getUserProfile GraphQL data as returned by LeetCode."""
    return {
        "matchedUser": {
            "username": "Alice",
            "submitStats": {
                "acSubmissionNum": [
                    {"difficulty": "All", "count": 50},
                    {"difficulty": "Easy", "count": 20},
                    {"difficulty": "Medium", "count": 25},
                    {"difficulty": "Hard", "count": 5},
                ]
            },
        }
    }


@pytest.fixture
def sample_tag_payload():
    """skillStats GraphQL data as returned by LeetCode."""
    return {
        "matchedUser": {
            "tagProblemCounts": {
                "advanced": [
                    {"tagName": "Dynamic Programming", "tagSlug": "dynamic-programming", "problemsSolved": 15},
                ],
                "intermediate": [
                    {"tagName": "Hash Table", "tagSlug": "hash-table", "problemsSolved": 9},
                    {"tagName": "Broken", "tagSlug": "broken", "problemsSolved": None},
                ],
                "fundamental": [
                    {"tagName": "Array", "tagSlug": "arrays", "problemsSolved": 30},
                ],
            }
        }
    }


@pytest.fixture
def fake_client(scenario_profile, scenario_tags):
    """Fake upstream client knowing 'alice' (the scenario user)."""
    return FakeLeetCodeClient(
        profiles={"alice": Profile(username="alice", solved=scenario_profile)},
        tags={"alice": scenario_tags},
        submissions={"alice": [
            {"title": "Two Sum", "slug": "two-sum", "lang": "python3", "timestamp": 1767225600},
        ]},
    )


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database shared across threads."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Database session for direct store tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
