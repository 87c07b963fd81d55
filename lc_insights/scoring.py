"""
Scoring Module for LeetCode Insights.

Interview-readiness analytics over a user's solve history:
velocity, breadth, leverage-weighted coverage, difficulty ramp, recency decay,
the composite readiness score, opportunity-cost topic recommendations and tiers.

All scoring functions are deterministic (same input → same output) and free of I/O.
"Now" is always passed in explicitly, so callers control the clock.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import (
    COVERAGE_SLOPE,
    RECENCY_DECAY_DAYS,
    RECENCY_FALLBACK,
    RECENCY_FLOOR,
    RECENCY_CEILING,
    MIN_ELAPSED_DAYS,
    VELOCITY_SATURATION_PER_DAY,
    BREADTH_MIN_SOLVED,
    BREADTH_TARGET_TAGS,
    HARD_RATIO_TARGET,
    READINESS_WEIGHT_VELOCITY,
    READINESS_WEIGHT_BREADTH,
    READINESS_WEIGHT_COVERAGE,
    READINESS_WEIGHT_RAMP,
    RECOMMENDATION_TOP_N,
    MIN_OPPORTUNITY,
    HIGH_LEVERAGE_WEIGHT,
    LOW_COVERAGE,
    NEXT_ACTION,
    DEFAULT_TAG_WEIGHT,
    TAG_LEVERAGE_WEIGHTS,
    TIER_BANDS,
    DEFAULT_TIER,
)
from .domain import (
    Breadth,
    DifficultyRamp,
    ProblemCounts,
    ReadinessComponents,
    ReadinessResult,
    Recommendation,
    Snapshot,
    TagCoverage,
    TagStat,
    Velocity,
    WeightedCoverage,
)

SECONDS_PER_DAY = 86400


# =============================================================================
# PRIMITIVES
# =============================================================================

def round_half_up(value: float, places: int) -> float:
    """
    Round for display the way JavaScript's toFixed does.

    The exact binary value is rounded and ties go away from zero, so
    round_half_up(0.125, 2) == 0.13 where the builtin round gives 0.12.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps (e.g. read back from SQLite) are UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from `start` to `end`. Negative if `end` is earlier."""
    return (_as_utc(end) - _as_utc(start)).total_seconds() / SECONDS_PER_DAY


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def coverage_from_solved(solved: float) -> float:
    """
    Convert a topic's solved count into coverage in [0, 1).

    Saturating curve 1 - e^(-solved/12): 12 solved ≈ 63%, so grinding 30+
    problems in one topic doesn't dominate. Negative input is treated as 0.
    """
    return 1 - math.exp(-max(0, solved) / COVERAGE_SLOPE)


def recency_factor(last_snapshot_at: Optional[datetime], now: datetime) -> float:
    """
    Exponential inactivity decay e^(-days_since/14).

    Returns the fixed fallback 0.5 when the user has no snapshot yet. A future
    `last_snapshot_at` (clock skew) yields a factor above 1; the readiness
    composer clamps it at the point of use.
    """
    if last_snapshot_at is None:
        return RECENCY_FALLBACK
    days_ago = days_between(last_snapshot_at, now)
    return math.exp(-days_ago / RECENCY_DECAY_DAYS)


# =============================================================================
# TAG WEIGHTS
# =============================================================================

class TagWeightTable:
    """
    Read-only mapping of tag slug -> interview-leverage weight.

    Slugs missing from the table get `default_weight`. Instances never change
    after construction and are safe to share between threads.
    """

    def __init__(self, weights: Mapping[str, float], default_weight: float = DEFAULT_TAG_WEIGHT):
        for slug, weight in weights.items():
            if weight <= 0:
                raise ValueError(f"Tag weight must be positive: {slug}={weight}")
        if default_weight <= 0:
            raise ValueError(f"Default tag weight must be positive, got {default_weight}")
        self._weights = MappingProxyType(dict(weights))
        self._default_weight = default_weight

    @property
    def default_weight(self) -> float:
        return self._default_weight

    @property
    def weights(self) -> Mapping[str, float]:
        return self._weights

    def weight_for(self, tag_slug: str) -> float:
        return self._weights.get(tag_slug, self._default_weight)

    def __contains__(self, tag_slug: str) -> bool:
        return tag_slug in self._weights

    def __len__(self) -> int:
        return len(self._weights)


DEFAULT_TAG_WEIGHTS = TagWeightTable(TAG_LEVERAGE_WEIGHTS)


# =============================================================================
# COMPONENT CALCULATORS
# =============================================================================

def velocity_from_snapshots(snapshots: Sequence[Snapshot]) -> Velocity:
    """
    Solved-problems-per-day between the first and last snapshot.

    Args:
        snapshots: Snapshots ordered by captured_at ascending, already limited
            to the window of interest by the caller

    Returns:
        Velocity with delta, per_day (2 decimals) and elapsed_days (2 decimals),
        or the empty Velocity when fewer than two snapshots are given
    """
    if not snapshots or len(snapshots) < 2:
        return Velocity()

    first = snapshots[0]
    last = snapshots[-1]
    delta = last.solved.all - first.solved.all
    elapsed_days = max(days_between(first.captured_at, last.captured_at), MIN_ELAPSED_DAYS)
    per_day = delta / elapsed_days

    return Velocity(
        delta=delta,
        per_day=round_half_up(per_day, 2),
        elapsed_days=round_half_up(elapsed_days, 2),
        first_at=first.captured_at,
        last_at=last.captured_at,
    )


def difficulty_ramp(solved: Optional[ProblemCounts]) -> DifficultyRamp:
    """Share of hard solves, normalized so an 18% hard ratio scores 1."""
    total = solved.all if solved else 0
    hard = solved.hard if solved else 0
    if total == 0:
        return DifficultyRamp(hard_ratio=0, score=0)

    hard_ratio = hard / total
    score = clamp(hard_ratio / HARD_RATIO_TARGET, 0, 1)
    return DifficultyRamp(hard_ratio=round_half_up(hard_ratio, 3), score=round_half_up(score, 3))


def breadth_score(tag_stats: Sequence[TagStat]) -> Breadth:
    """Topics with at least 3 solves, against a baseline of 12 such topics."""
    if not tag_stats:
        return Breadth(distinct_tags=0, score=0)

    distinct = sum(1 for t in tag_stats if t.solved >= BREADTH_MIN_SOLVED)
    score = clamp(distinct / BREADTH_TARGET_TAGS, 0, 1)
    return Breadth(distinct_tags=distinct, score=round_half_up(score, 3))


def weighted_coverage(
    tag_stats: Sequence[TagStat],
    weights: TagWeightTable = DEFAULT_TAG_WEIGHTS,
) -> WeightedCoverage:
    """
    Leverage-weighted average coverage over the observed topics.

    score = Σ(weight × coverage) / Σ(weight). Topics absent from `tag_stats`
    contribute to neither sum.

    Args:
        tag_stats: Per-topic solved counts
        weights: Leverage weight table

    Returns:
        WeightedCoverage with the score (3 decimals) and one detail per tag,
        in input order
    """
    if not tag_stats:
        return WeightedCoverage(score=0, details=())

    details = []
    for t in tag_stats:
        weight = weights.weight_for(t.tag_slug)
        coverage = coverage_from_solved(t.solved)
        details.append(TagCoverage(
            tag_slug=t.tag_slug,
            tag_name=t.tag_name,
            solved=t.solved,
            weight=round_half_up(weight, 3),
            coverage=round_half_up(coverage, 3),
            weighted=weight * coverage,
        ))

    sum_weights = sum(weights.weight_for(t.tag_slug) for t in tag_stats) or 1
    sum_weighted = sum(d.weighted for d in details)
    score = clamp(sum_weighted / sum_weights, 0, 1)

    return WeightedCoverage(score=round_half_up(score, 3), details=tuple(details))


def readiness_score(
    velocity_per_day: Optional[float],
    breadth: float,
    ramp: float,
    weighted_cov: float,
    recency: float,
) -> ReadinessResult:
    """
    Composite 0-100 readiness score.

    base = 100 × (0.30·velocity + 0.25·breadth + 0.30·coverage + 0.15·ramp),
    where velocity is per-day solves saturating at 2/day. Recency is applied
    multiplicatively and clamped to [0.15, 1.0], so inactivity always costs
    but never zeroes the score on its own.

    Args:
        velocity_per_day: Solves per day, or None when unknown (counts as 0)
        breadth: Breadth score in [0, 1]
        ramp: Difficulty ramp score in [0, 1]
        weighted_cov: Weighted coverage score in [0, 1]
        recency: Raw recency factor (unclamped)

    Returns:
        ReadinessResult with base and final (1 decimal) and the per-component
        contributions rescaled to 0-100; the recency factor is reported raw
        to 3 decimals
    """
    v = clamp((velocity_per_day or 0) / VELOCITY_SATURATION_PER_DAY, 0, 1)

    base = 100 * (
        READINESS_WEIGHT_VELOCITY * v
        + READINESS_WEIGHT_BREADTH * breadth
        + READINESS_WEIGHT_COVERAGE * weighted_cov
        + READINESS_WEIGHT_RAMP * ramp
    )
    final = base * clamp(recency, RECENCY_FLOOR, RECENCY_CEILING)

    return ReadinessResult(
        base=round_half_up(base, 1),
        final=round_half_up(final, 1),
        components=ReadinessComponents(
            velocity=round_half_up(100 * v, 1),
            breadth=round_half_up(100 * breadth, 1),
            leverage_coverage=round_half_up(100 * weighted_cov, 1),
            difficulty_ramp=round_half_up(100 * ramp, 1),
            recency_factor=round_half_up(recency, 3),
        ),
    )


def _why(weight: float, coverage: float) -> List[str]:
    return [
        "High interview-leverage topic" if weight >= HIGH_LEVERAGE_WEIGHT else "Common interview topic",
        "Low coverage based on your solved count" if coverage < LOW_COVERAGE else "Moderate gap remaining",
        "Improves breadth and readiness faster than grinding random problems",
    ]


def build_opportunity_cost_recommendations(
    tag_stats: Sequence[TagStat],
    top_n: int = RECOMMENDATION_TOP_N,
    weights: TagWeightTable = DEFAULT_TAG_WEIGHTS,
) -> List[Recommendation]:
    """
    Rank topics by opportunity = leverage weight × (1 - coverage).

    Topics below the 0.25 opportunity floor are dropped as noise. Ties are
    broken by tag slug ascending so output is fully deterministic.

    Args:
        tag_stats: Per-topic solved counts
        top_n: Maximum recommendations to return
        weights: Leverage weight table

    Returns:
        Up to `top_n` recommendations, highest opportunity first
    """
    if not tag_stats or top_n <= 0:
        return []

    ranked = []
    for t in tag_stats:
        weight = weights.weight_for(t.tag_slug)
        coverage = coverage_from_solved(t.solved)
        opportunity = weight * (1 - coverage)
        ranked.append((
            round_half_up(opportunity, 3),
            t,
            round_half_up(weight, 2),
            round_half_up(coverage, 3),
        ))

    ranked.sort(key=lambda x: (-x[0], x[1].tag_slug))

    return [
        Recommendation(
            tag_slug=t.tag_slug,
            tag_name=t.tag_name,
            solved=t.solved,
            weight=weight,
            coverage=coverage,
            opportunity=opportunity,
            why=tuple(_why(weight, coverage)),
            next_action=NEXT_ACTION,
        )
        for opportunity, t, weight, coverage in ranked
        if opportunity >= MIN_OPPORTUNITY
    ][:top_n]


def classify_tier(total_solved: Optional[int]) -> str:
    """Leaderboard tier for a total solved count. None counts as 0."""
    count = total_solved or 0
    for name, low, high in TIER_BANDS:
        if count >= low and (high is None or count <= high):
            return name
    return DEFAULT_TIER


# =============================================================================
# ENGINE
# =============================================================================

class ReadinessEngine:
    """
    Facade over the scoring functions with an injected weight table and clock.

    Holds no mutable state; one instance can serve concurrent requests.
    """

    def __init__(
        self,
        weights: TagWeightTable = DEFAULT_TAG_WEIGHTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.weights = weights
        self.clock = clock

    def compute_velocity(self, snapshots: Sequence[Snapshot]) -> Velocity:
        return velocity_from_snapshots(snapshots)

    def compute_recommendations(
        self,
        tag_stats: Sequence[TagStat],
        top_n: int = RECOMMENDATION_TOP_N,
    ) -> List[Recommendation]:
        return build_opportunity_cost_recommendations(tag_stats, top_n, self.weights)

    def classify_tier(self, total_solved: Optional[int]) -> str:
        return classify_tier(total_solved)

    def compute_readiness(
        self,
        profile: ProblemCounts,
        tag_stats: Sequence[TagStat],
        snapshots: Sequence[Snapshot],
        now: Optional[datetime] = None,
    ) -> ReadinessResult:
        return self.compute_insights(profile, tag_stats, snapshots, now)["readiness"]

    def compute_insights(
        self,
        profile: ProblemCounts,
        tag_stats: Sequence[TagStat],
        snapshots: Sequence[Snapshot],
        now: Optional[datetime] = None,
        top_n: int = RECOMMENDATION_TOP_N,
    ) -> Dict[str, object]:
        """
        Run every calculator once over the same inputs.

        Args:
            profile: Current solved counts
            tag_stats: Current per-topic solved counts
            snapshots: Window of snapshots, ascending by captured_at
            now: Evaluation time (defaults to the engine clock)
            top_n: Maximum recommendations

        Returns:
            Dict with velocity, ramp, breadth, coverage, recency, last_snapshot_at,
            readiness and recommendations
        """
        now = now or self.clock()

        velocity = velocity_from_snapshots(snapshots)
        ramp = difficulty_ramp(profile)
        breadth = breadth_score(tag_stats)
        coverage = weighted_coverage(tag_stats, self.weights)

        last_snapshot_at = snapshots[-1].captured_at if snapshots else None
        recency = recency_factor(last_snapshot_at, now)

        readiness = readiness_score(
            velocity_per_day=velocity.per_day,
            breadth=breadth.score,
            ramp=ramp.score,
            weighted_cov=coverage.score,
            recency=recency,
        )

        return {
            "velocity": velocity,
            "ramp": ramp,
            "breadth": breadth,
            "coverage": coverage,
            "recency": recency,
            "last_snapshot_at": last_snapshot_at,
            "readiness": readiness,
            "recommendations": self.compute_recommendations(tag_stats, top_n),
        }


def sort_tag_stats(tag_stats: Iterable[TagStat]) -> List[TagStat]:
    """Tags by solved count descending, then slug."""
    return sorted(tag_stats, key=lambda t: (-t.solved, t.tag_slug))
