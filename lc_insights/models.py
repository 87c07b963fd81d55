"""
SQLAlchemy ORM models for LeetCode Insights.
Defines tracked users, append-only snapshots with per-tag rows, and the leaderboard.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class LcUser(Base):
    """
    A LeetCode handle we track snapshots for.
    Usernames are stored lowercase and are unique.
    """
    __tablename__ = "lc_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    snapshots = relationship("LcSnapshot", back_populates="user", order_by="LcSnapshot.captured_at")


class LcSnapshot(Base):
    """
    Immutable capture of cumulative solved counts.
    Rows are only ever inserted, never updated or deleted by the application.
    """
    __tablename__ = "lc_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("lc_users.id"), nullable=False, index=True)
    captured_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    solved_all = Column(Integer, nullable=False, default=0)
    solved_easy = Column(Integer, nullable=False, default=0)
    solved_medium = Column(Integer, nullable=False, default=0)
    solved_hard = Column(Integer, nullable=False, default=0)

    user = relationship("LcUser", back_populates="snapshots")
    tags = relationship("LcSnapshotTag", back_populates="snapshot")


class LcSnapshotTag(Base):
    """Per-topic solved count captured with a snapshot."""
    __tablename__ = "lc_snapshot_tags"
    __table_args__ = (UniqueConstraint("snapshot_id", "tag_slug", name="uq_snapshot_tag"),)

    id = Column(Integer, primary_key=True, index=True)
    snapshot_id = Column(Integer, ForeignKey("lc_snapshots.id"), nullable=False, index=True)
    tag_slug = Column(String, nullable=False)
    tag_name = Column(String, nullable=False)
    solved = Column(Integer, nullable=False, default=0)

    snapshot = relationship("LcSnapshot", back_populates="tags")


class LeaderboardUser(Base):
    """
    Latest known totals for every username seen on the dashboard.
    Tier is derived from total_solved at write time.
    """
    __tablename__ = "leaderboard_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    total_solved = Column(Integer, nullable=False, default=0, index=True)
    solved_easy = Column(Integer, nullable=False, default=0)
    solved_medium = Column(Integer, nullable=False, default=0)
    solved_hard = Column(Integer, nullable=False, default=0)
    tier = Column(String, nullable=False, default="Bronze", index=True)
    first_seen_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
