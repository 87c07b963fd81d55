"""
Centralized Configuration Module for LeetCode Insights.

All configurable constants, timeouts, TTLs, thresholds and weights are defined here.
Import from this module instead of hardcoding values.
"""

import os

# =============================================================================
# LEETCODE API CONFIGURATION
# =============================================================================

LEETCODE_GRAPHQL_URL = os.getenv("LEETCODE_GRAPHQL_URL", "https://leetcode.com/graphql")
LEETCODE_API_TIMEOUT = 15  # seconds
LEETCODE_API_MAX_RETRIES = 3
LEETCODE_API_RETRY_DELAY = 1.0  # seconds (exponential backoff base)
LEETCODE_USER_AGENT = "leetcode-analytics-dashboard/1.0"

RECENT_SUBMISSIONS_LIMIT = 20

# LeetCode username validation pattern
USERNAME_PATTERN = r"^[a-zA-Z0-9_.\-]{1,40}$"
USERNAME_MAX_LENGTH = 40

# =============================================================================
# DATABASE
# =============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lc_insights.db")

# =============================================================================
# CACHE CONFIGURATION
# =============================================================================

CACHE_TTL_SECONDS = 60
CACHE_MAX_ENTRIES = 1000

# =============================================================================
# RATE LIMITING
# =============================================================================

RATE_LIMIT_PER_MINUTE = 60

# =============================================================================
# HISTORY WINDOWS
# =============================================================================

HISTORY_DAYS_DEFAULT = 30
HISTORY_DAYS_MIN = 1
HISTORY_DAYS_MAX = 365

INSIGHTS_DAYS_DEFAULT = 30
INSIGHTS_DAYS_MIN = 7
INSIGHTS_DAYS_MAX = 365

# =============================================================================
# SCHEDULED SNAPSHOTS
# =============================================================================

SNAPSHOT_CRON = os.getenv("SNAPSHOT_CRON", "0 2 * * *")  # daily, 02:00 UTC
SNAPSHOT_JOB_ENABLED = os.getenv("SNAPSHOT_JOB_ENABLED", "1").lower() not in ("0", "false", "no")

# =============================================================================
# SCORING CONSTANTS
# =============================================================================

# Coverage curve: 1 - e^(-solved / k). 12 solved ~ 63% coverage.
COVERAGE_SLOPE = 12

# Recency decay: e^(-days / 14). ~0.37 after 14 idle days, ~0.12 after 30.
RECENCY_DECAY_DAYS = 14
RECENCY_FALLBACK = 0.5  # no snapshot yet
RECENCY_FLOOR = 0.15
RECENCY_CEILING = 1.0

# Velocity: floor on elapsed days so same-timestamp snapshots don't divide by zero
MIN_ELAPSED_DAYS = 0.0001
VELOCITY_SATURATION_PER_DAY = 2.0

# Breadth: a topic counts once it has at least 3 solves; 12 such topics saturate
BREADTH_MIN_SOLVED = 3
BREADTH_TARGET_TAGS = 12

# Difficulty ramp: 18% hard exposure saturates
HARD_RATIO_TARGET = 0.18

# Composite weights
READINESS_WEIGHT_VELOCITY = 0.30
READINESS_WEIGHT_BREADTH = 0.25
READINESS_WEIGHT_COVERAGE = 0.30
READINESS_WEIGHT_RAMP = 0.15

_READINESS_WEIGHT_SUM = (
    READINESS_WEIGHT_VELOCITY
    + READINESS_WEIGHT_BREADTH
    + READINESS_WEIGHT_COVERAGE
    + READINESS_WEIGHT_RAMP
)

if abs(_READINESS_WEIGHT_SUM - 1.0) >= 0.001:
    raise RuntimeError(f"Readiness weights must sum to 1.0, got {_READINESS_WEIGHT_SUM}")

# =============================================================================
# RECOMMENDATION SETTINGS
# =============================================================================

RECOMMENDATION_TOP_N = 7
MIN_OPPORTUNITY = 0.25
HIGH_LEVERAGE_WEIGHT = 1.2
LOW_COVERAGE = 0.4
NEXT_ACTION = "Solve 5 problems across Easy→Medium, then reassess"

# =============================================================================
# TAG LEVERAGE WEIGHTS
# =============================================================================

# Interview-leverage weights. Higher = more interview-relevant.
DEFAULT_TAG_WEIGHT = 0.6

TAG_LEVERAGE_WEIGHTS = {
    "arrays": 1.0,
    "string": 0.9,
    "hash-table": 1.1,
    "two-pointers": 1.0,
    "sliding-window": 1.1,
    "binary-search": 1.2,
    "sorting": 0.9,
    "stack": 1.0,
    "queue": 0.8,
    "linked-list": 0.8,
    "tree": 1.2,
    "binary-tree": 1.2,
    "binary-search-tree": 1.1,
    "heap-priority-queue": 1.1,
    "graph": 1.3,
    "breadth-first-search": 1.2,
    "depth-first-search": 1.2,
    "dynamic-programming": 1.35,
    "greedy": 1.1,
    "backtracking": 1.0,
    "bit-manipulation": 0.9,
    "math": 0.7,
    "union-find": 1.0,
    "trie": 0.9,
    "intervals": 1.0,
}

# =============================================================================
# LEADERBOARD TIERS
# =============================================================================

# (name, min, max) - ordered, contiguous, non-overlapping. None = unbounded.
TIER_BANDS = (
    ("Bronze", 0, 99),
    ("Silver", 100, 299),
    ("Gold", 300, 599),
    ("Platinum", 600, 999),
    ("Diamond", 1000, 1499),
    ("Iridescent", 1500, None),
)
DEFAULT_TIER = "Bronze"

LEADERBOARD_LIMIT_DEFAULT = 250
LEADERBOARD_LIMIT_MAX = 500
LEADERBOARD_TOP_SIZE = 250
LEADERBOARD_MIN_USERS_FOR_TOP = 300

# =============================================================================
# API SETTINGS
# =============================================================================

API_PREFIX = "/api"

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_username(username: str) -> str:
    """Normalize a LeetCode username to its stored form."""
    return (username or "").strip().lower()
