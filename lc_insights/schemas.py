"""
Pydantic schemas for request bodies.
Payload contents are checked by the validation module so caller errors share
the structured ValidationError response.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .config import RECOMMENDATION_TOP_N


class ReadinessRequest(BaseModel):
    """Raw engine inputs for an on-demand readiness computation."""
    profile: Dict[str, Any]
    tag_stats: List[Dict[str, Any]] = Field(default_factory=list)
    snapshots: List[Dict[str, Any]] = Field(default_factory=list)
    now: Optional[datetime] = None
    top_n: int = Field(RECOMMENDATION_TOP_N, ge=0, le=50)


class VelocityRequest(BaseModel):
    """Snapshots, ascending by captured_at."""
    snapshots: List[Dict[str, Any]] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    tag_stats: List[Dict[str, Any]] = Field(default_factory=list)
    top_n: int = Field(RECOMMENDATION_TOP_N, ge=0, le=50)
