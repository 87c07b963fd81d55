"""
Domain value types for LeetCode Insights.

Inputs (ProblemCounts, TagStat, Snapshot) are immutable and produced fresh on every
fetch or query. Result types are derived and ephemeral; they are never persisted.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ProblemCounts:
    """Accepted-problem counts per difficulty. `all` is authoritative."""
    all: int = 0
    easy: int = 0
    medium: int = 0
    hard: int = 0

    @classmethod
    def from_difficulty_counts(cls, counts: Mapping[str, Optional[int]]) -> "ProblemCounts":
        """
        Build counts from a difficulty -> count mapping (keys are case-insensitive).

        The reported "all" wins over easy + medium + hard when both are present.
        """
        by_difficulty = {str(k).lower(): v for k, v in counts.items()}
        easy = by_difficulty.get("easy") or 0
        medium = by_difficulty.get("medium") or 0
        hard = by_difficulty.get("hard") or 0
        total = by_difficulty.get("all")
        if total is None:
            total = easy + medium + hard
        return cls(all=total, easy=easy, medium=medium, hard=hard)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class TagStat:
    """Solved count for one topic tag."""
    tag_slug: str
    tag_name: str
    solved: int

    def to_dict(self) -> Dict[str, Any]:
        return {"tag_slug": self.tag_slug, "tag_name": self.tag_name, "solved": self.solved}


@dataclass(frozen=True)
class Snapshot:
    """Immutable timestamped capture of a user's cumulative counts."""
    id: Optional[int]
    captured_at: datetime
    solved: ProblemCounts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "captured_at": self.captured_at.isoformat(),
            "solved": self.solved.to_dict(),
        }


@dataclass(frozen=True)
class Profile:
    """Upstream profile: canonical username plus solved counts."""
    username: str
    solved: ProblemCounts

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "solved": self.solved.to_dict()}


# =============================================================================
# DERIVED RESULTS
# =============================================================================

@dataclass(frozen=True)
class Velocity:
    """Solve velocity between the first and last snapshot of a window.

    All numeric fields are None when fewer than two snapshots are available.
    """
    delta: Optional[int] = None
    per_day: Optional[float] = None
    elapsed_days: Optional[float] = None
    first_at: Optional[datetime] = None
    last_at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.per_day is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delta": self.delta,
            "per_day": self.per_day,
            "elapsed_days": self.elapsed_days,
            "first_at": self.first_at.isoformat() if self.first_at else None,
            "last_at": self.last_at.isoformat() if self.last_at else None,
        }


@dataclass(frozen=True)
class DifficultyRamp:
    hard_ratio: float = 0.0
    score: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class Breadth:
    distinct_tags: int = 0
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TagCoverage:
    tag_slug: str
    tag_name: str
    solved: int
    weight: float
    coverage: float
    weighted: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WeightedCoverage:
    score: float = 0.0
    details: Tuple[TagCoverage, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "details": [d.to_dict() for d in self.details]}


@dataclass(frozen=True)
class ReadinessComponents:
    """Component contributions rescaled to 0-100, plus the raw recency factor."""
    velocity: float
    breadth: float
    leverage_coverage: float
    difficulty_ramp: float
    recency_factor: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ReadinessResult:
    base: float
    final: float
    components: ReadinessComponents

    def to_dict(self) -> Dict[str, Any]:
        return {"base": self.base, "final": self.final, "components": self.components.to_dict()}


@dataclass(frozen=True)
class Recommendation:
    tag_slug: str
    tag_name: str
    solved: int
    weight: float
    coverage: float
    opportunity: float
    why: Tuple[str, ...] = ()
    next_action: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["why"] = list(self.why)
        return result
