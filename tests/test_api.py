"""
API Tests for LeetCode Insights routes.
"""

import pytest
from datetime import timedelta

from sqlalchemy.orm import sessionmaker

from fastapi.testclient import TestClient

from lc_insights.api_routes import get_cache, get_engine
from lc_insights.cache import ResponseCache
from lc_insights.database import get_db, make_engine
from lc_insights.domain import ProblemCounts
from lc_insights.leetcode_client import get_leetcode_client
from lc_insights.main import RateLimiter, app, rate_limiter
from lc_insights.scoring import ReadinessEngine
from lc_insights.snapshots import ensure_user, insert_snapshot

from conftest import D0


SCENARIO_BODY = {
    "profile": {"all": 50, "easy": 20, "medium": 25, "hard": 5},
    "tag_stats": [
        {"tag_slug": "dynamic-programming", "tag_name": "Dynamic Programming", "solved": 15},
        {"tag_slug": "arrays", "tag_name": "Array", "solved": 30},
    ],
    "snapshots": [
        {"captured_at": "2026-01-01T00:00:00Z", "solved": {"all": 30, "easy": 15, "medium": 13, "hard": 2}},
        {"captured_at": "2026-01-11T00:00:00Z", "solved": {"all": 50, "easy": 20, "medium": 25, "hard": 5}},
    ],
    "now": "2026-01-11T00:00:00Z",
}

SNAPSHOT_COUNTS = (
    ProblemCounts(all=30, easy=15, medium=13, hard=2),
    ProblemCounts(all=50, easy=20, medium=25, hard=5),
)


@pytest.fixture
def api_cache():
    return ResponseCache(ttl_seconds=60)


@pytest.fixture
def client(session_factory, fake_client, api_cache, fixed_now):
    """TestClient with storage, upstream, clock and cache overridden."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_leetcode_client] = lambda: fake_client
    app.dependency_overrides[get_engine] = lambda: ReadinessEngine(clock=lambda: fixed_now)
    app.dependency_overrides[get_cache] = lambda: api_cache
    rate_limiter.requests.clear()

    yield TestClient(app)

    app.dependency_overrides.clear()
    rate_limiter.requests.clear()


def _upstream_calls(fake_client, kind):
    return sum(1 for k, _ in fake_client.calls if k == kind)


class TestRootEndpoints:
    """Tests for root and health endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "insights" in response.json()["endpoints"]

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Response-Time" in response.headers


class TestDashboard:
    """Tests for the live dashboard endpoint."""

    def test_dashboard_and_cache(self, client, fake_client):
        response = client.get("/api/leetcode/dashboard/Alice")
        assert response.status_code == 200
        body = response.json()

        assert body["error"] is False
        assert body["cached"] is False
        assert body["data"]["profile"]["solved"]["all"] == 50
        assert body["data"]["tier"] == "Bronze"
        assert body["data"]["recent_accepted"][0]["slug"] == "two-sum"
        assert [t["tag_slug"] for t in body["data"]["tags"]] == ["dynamic-programming", "arrays"]

        again = client.get("/api/leetcode/dashboard/alice").json()
        assert again["cached"] is True
        assert _upstream_calls(fake_client, "profile") == 1

    def test_dashboard_records_leaderboard_user(self, client):
        client.get("/api/leetcode/dashboard/alice")

        board = client.get("/api/leaderboard").json()["data"]
        assert board["total_users"] == 1
        assert board["leaderboard"][0]["username"] == "alice"

        rank = client.get("/api/leaderboard/rank/alice").json()["data"]
        assert rank["found"] is True
        assert rank["rank"] == 1

    def test_unknown_user(self, client):
        response = client.get("/api/leetcode/dashboard/ghost")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] is True
        assert body["code"] == "USER_NOT_FOUND"

    def test_invalid_username(self, client, fake_client):
        for bad in ("bad$name", "x" * 41):
            response = client.get(f"/api/leetcode/dashboard/{bad}")
            assert response.status_code == 400
            assert response.json()["code"] == "INVALID_USERNAME"
        assert fake_client.calls == []


class TestSnapshotsAndHistory:
    """Tests for snapshot and history endpoints."""

    def test_snapshot_then_history(self, client):
        response = client.post("/api/leetcode/snapshot/Alice")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "alice"
        assert data["solved"]["all"] == 50
        assert data["tags_count"] == 2

        history = client.get("/api/leetcode/history/alice").json()["data"]
        assert history["days"] == 30
        assert len(history["snapshots"]) == 1
        assert history["snapshots"][0]["id"] == data["snapshot_id"]

    def test_snapshot_unknown_user(self, client):
        response = client.post("/api/leetcode/snapshot/ghost")
        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    def test_history_without_snapshots(self, client):
        response = client.get("/api/leetcode/history/alice")
        assert response.status_code == 404
        assert response.json()["code"] == "NO_SNAPSHOTS"

    def test_history_days_clamped(self, client):
        client.post("/api/leetcode/snapshot/alice")
        assert client.get("/api/leetcode/history/alice?days=1000").json()["data"]["days"] == 365
        assert client.get("/api/leetcode/history/alice?days=0").json()["data"]["days"] == 1


class TestInsights:
    """Tests for the readiness insights endpoint."""

    def _seed(self, session_factory):
        db = session_factory()
        user = ensure_user(db, "alice")
        insert_snapshot(db, user.id, SNAPSHOT_COUNTS[0], captured_at=D0)
        insert_snapshot(db, user.id, SNAPSHOT_COUNTS[1], captured_at=D0 + timedelta(days=10))
        db.close()

    def test_insights_with_history(self, client, session_factory):
        self._seed(session_factory)

        body = client.get("/api/leetcode/insights/alice").json()
        assert body["cached"] is False
        data = body["data"]

        assert data["readiness"]["base"] == 66.5
        assert data["readiness"]["final"] == 66.5
        assert data["readiness"]["components"]["velocity"] == 100.0
        assert data["history"]["snapshot_count"] == 2
        assert data["history"]["velocity"]["per_day"] == 2.0
        assert data["history"]["last_snapshot_at"].startswith("2026-01-11T00:00:00")
        assert data["diagnostics"]["leverage_coverage_score"] == 0.8
        assert data["diagnostics"]["note"] == "Velocity computed from your snapshots."
        assert [r["tag_slug"] for r in data["recommendations"]["next_topics"]] == ["dynamic-programming"]

    def test_insights_without_history(self, client):
        data = client.get("/api/leetcode/insights/alice").json()["data"]

        assert data["history"]["snapshot_count"] == 0
        assert data["history"]["velocity"]["per_day"] is None
        assert data["history"]["last_snapshot_at"] is None
        assert data["readiness"]["components"]["recency_factor"] == 0.5
        assert data["diagnostics"]["note"].startswith("Velocity is limited")

    def test_insights_cached_until_new_snapshot(self, client, fake_client):
        client.get("/api/leetcode/insights/alice?days=14")
        assert client.get("/api/leetcode/insights/alice?days=14").json()["cached"] is True
        assert _upstream_calls(fake_client, "profile") == 1

        client.post("/api/leetcode/snapshot/alice")
        assert client.get("/api/leetcode/insights/alice?days=14").json()["cached"] is False

    def test_insights_days_clamped(self, client):
        assert client.get("/api/leetcode/insights/alice?days=1").json()["data"]["history"]["days"] == 7


class TestEngineEndpoints:
    """Tests for the caller-supplied engine endpoints."""

    def test_readiness(self, client):
        response = client.post("/api/engine/readiness", json=SCENARIO_BODY)
        assert response.status_code == 200
        data = response.json()["data"]

        assert data["readiness"]["final"] == 66.5
        assert data["breadth"]["score"] == 0.167
        assert data["difficulty_ramp"]["score"] == 0.556
        assert data["weighted_coverage"]["score"] == 0.8
        assert data["velocity"]["delta"] == 20
        assert data["recommendations"][0]["why"][0] == "High interview-leverage topic"

    def test_readiness_after_two_weeks(self, client):
        body = dict(SCENARIO_BODY, now="2026-01-25T00:00:00Z")
        readiness = client.post("/api/engine/readiness", json=body).json()["data"]["readiness"]
        assert readiness["final"] == 24.5
        assert readiness["components"]["recency_factor"] == 0.368

    def test_readiness_rejects_negative_counts(self, client):
        body = dict(SCENARIO_BODY, profile={"all": -1, "easy": 0, "medium": 0, "hard": 0})
        response = client.post("/api/engine/readiness", json=body)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_readiness_rejects_malformed_body(self, client):
        body = dict(SCENARIO_BODY, profile=[1, 2, 3])
        response = client.post("/api/engine/readiness", json=body)
        assert response.status_code == 400
        payload = response.json()
        assert payload["error"] is True
        assert payload["code"] == "VALIDATION_ERROR"
        assert "profile" in payload["detail"]

    def test_recommendations_rejects_negative_top_n(self, client):
        response = client.post("/api/engine/recommendations", json={"tag_stats": [], "top_n": -1})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_readiness_rejects_unordered_snapshots(self, client):
        body = dict(SCENARIO_BODY, snapshots=list(reversed(SCENARIO_BODY["snapshots"])))
        response = client.post("/api/engine/readiness", json=body)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_velocity(self, client):
        data = client.post("/api/engine/velocity", json={"snapshots": SCENARIO_BODY["snapshots"]}).json()["data"]
        assert data["per_day"] == 2.0
        assert data["elapsed_days"] == 10.0

    def test_recommendations(self, client):
        body = {"tag_stats": [{"tag_slug": "graph", "solved": 0}, {"tag_slug": "trie", "solved": 0}], "top_n": 1}
        data = client.post("/api/engine/recommendations", json=body).json()["data"]
        assert len(data) == 1
        assert data[0]["tag_slug"] == "graph"
        assert data[0]["opportunity"] == 1.3

    def test_tier(self, client):
        assert client.get("/api/engine/tier?total_solved=1500").json()["data"]["tier"] == "Iridescent"
        assert client.get("/api/engine/tier").json()["data"]["tier"] == "Bronze"
        rejected = client.get("/api/engine/tier?total_solved=-1")
        assert rejected.status_code == 400
        assert rejected.json()["code"] == "VALIDATION_ERROR"


class TestLeaderboardEndpoints:
    """Tests for leaderboard routes."""

    def test_stats_empty(self, client):
        data = client.get("/api/leaderboard/stats").json()["data"]
        assert data["total_users"] == 0
        assert data["users_needed"] == 300
        assert data["tier_distribution"] == []

    def test_rank_unknown(self, client):
        assert client.get("/api/leaderboard/rank/ghost").json()["data"] == {"found": False}

    def test_storage_unavailable(self, client):
        broken = sessionmaker(bind=make_engine("sqlite:////nonexistent-dir/lc_insights.db"))

        def broken_db():
            db = broken()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = broken_db
        response = client.get("/api/leaderboard/stats")
        assert response.status_code == 503
        assert response.json()["code"] == "STORAGE_UNAVAILABLE"


class TestRateLimiting:
    """Tests for the per-IP rate limiter."""

    def test_limit_exceeded(self, client, monkeypatch):
        monkeypatch.setattr("lc_insights.main.rate_limiter", RateLimiter(requests_per_minute=2))

        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        response = client.get("/")
        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMITED"
        assert int(response.headers["Retry-After"]) > 0

        assert client.get("/health").status_code == 200

    def test_limiter_window_slides(self):
        now = [0.0]
        limiter = RateLimiter(requests_per_minute=1, time_source=lambda: now[0])

        assert limiter.is_allowed("1.2.3.4") == (True, 0)
        allowed, retry_after = limiter.is_allowed("1.2.3.4")
        assert not allowed
        assert retry_after == 61
        assert limiter.is_allowed("5.6.7.8")[0]

        now[0] = 61.0
        assert limiter.is_allowed("1.2.3.4") == (True, 0)
