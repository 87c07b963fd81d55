"""
Input Validation Utilities for LeetCode Insights.

Caller errors (wrong types, negative counts, unordered history) are rejected here,
before data reaches the scoring engine. The engine assumes validated input.
"""

import re
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .config import USERNAME_PATTERN, USERNAME_MAX_LENGTH
from .domain import ProblemCounts, Snapshot, TagStat
from .errors import InvalidUsernameError, ValidationError
from .scoring import days_between

DIFFICULTIES = ("all", "easy", "medium", "hard")


def validate_username(username: str) -> Tuple[bool, Optional[str]]:
    """
    Validate LeetCode username format.

    Args:
        username: The username to validate

    Returns:
        Tuple of (is_valid, error_message)
        If valid, returns (True, None)
        If invalid, returns (False, "error description")
    """
    if not username or not username.strip():
        return False, "Username cannot be empty"

    username = username.strip()

    if len(username) > USERNAME_MAX_LENGTH:
        return False, f"Username must be at most {USERNAME_MAX_LENGTH} characters"

    if not re.match(USERNAME_PATTERN, username):
        return False, "Username can only contain letters, numbers, underscores, hyphens and dots"

    return True, None


def require_username(username: str) -> str:
    """Validate and return the stripped username, raising InvalidUsernameError."""
    is_valid, error = validate_username(username)
    if not is_valid:
        raise InvalidUsernameError(username or "", error)
    return username.strip()


def clamp_range(value: int, low: int, high: int) -> int:
    """Clamp a window or limit parameter into [low, high]."""
    return min(max(int(value), low), high)


def _non_negative_int(value: Any, name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", detail=f"got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} cannot be negative", detail=f"got {value}")
    return value


def parse_problem_counts(raw: Mapping[str, Any]) -> ProblemCounts:
    """
    Build ProblemCounts from a mapping with all/easy/medium/hard keys.

    Raises:
        ValidationError: on missing keys, non-integers or negative counts
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Problem counts must be an object")

    missing = [k for k in DIFFICULTIES if k not in raw]
    if missing:
        raise ValidationError("Problem counts missing keys", detail=", ".join(missing))

    return ProblemCounts(**{k: _non_negative_int(raw[k], f"solved.{k}") for k in DIFFICULTIES})


def parse_tag_stats(raw: Iterable[Mapping[str, Any]]) -> List[TagStat]:
    """
    Build TagStats from mappings with tag_slug, tag_name and solved.

    Raises:
        ValidationError: on malformed entries or duplicate slugs
    """
    if isinstance(raw, (str, bytes, Mapping)):
        raise ValidationError("Tag stats must be a list")

    stats = []
    seen = set()
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Tag stat #{i} must be an object")

        slug = entry.get("tag_slug")
        if not isinstance(slug, str) or not slug:
            raise ValidationError(f"Tag stat #{i} needs a non-empty tag_slug")
        if slug in seen:
            raise ValidationError("Duplicate tag slug", detail=slug)
        seen.add(slug)

        name = entry.get("tag_name") or slug
        if not isinstance(name, str):
            raise ValidationError(f"Tag stat '{slug}' has a non-string tag_name")

        solved = _non_negative_int(entry.get("solved"), f"{slug}.solved")
        stats.append(TagStat(tag_slug=slug, tag_name=name, solved=solved))

    return stats


def parse_snapshots(raw: Iterable[Mapping[str, Any]]) -> List[Snapshot]:
    """
    Build Snapshots from mappings with captured_at (datetime or ISO string) and solved.

    Raises:
        ValidationError: on malformed entries or when not ascending by captured_at
    """
    if isinstance(raw, (str, bytes, Mapping)):
        raise ValidationError("Snapshots must be a list")

    snapshots = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Snapshot #{i} must be an object")

        captured_at = entry.get("captured_at")
        if isinstance(captured_at, str):
            try:
                captured_at = datetime.fromisoformat(captured_at.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(f"Snapshot #{i} has an invalid captured_at", detail=captured_at)
        if not isinstance(captured_at, datetime):
            raise ValidationError(f"Snapshot #{i} needs a captured_at timestamp")

        snapshots.append(Snapshot(
            id=entry.get("id"),
            captured_at=captured_at,
            solved=parse_problem_counts(entry.get("solved")),
        ))

    validate_snapshot_order(snapshots)
    return snapshots


def validate_snapshot_order(snapshots: List[Snapshot]) -> None:
    """Raise ValidationError unless snapshots are ascending by captured_at."""
    for prev, cur in zip(snapshots, snapshots[1:]):
        if days_between(prev.captured_at, cur.captured_at) < 0:
            raise ValidationError(
                "Snapshots must be ordered by captured_at ascending",
                detail=f"{cur.captured_at.isoformat()} precedes {prev.captured_at.isoformat()}"
            )
