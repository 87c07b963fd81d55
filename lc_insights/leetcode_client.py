"""
LeetCode GraphQL Client Module.

Handles all communication with the LeetCode GraphQL API including:
- Timeout and retry handling with exponential backoff
- Structured error responses
- Parsing of profile, topic-tag and recent-submission payloads
"""

import requests
import logging
import time
from typing import Any, Dict, List, Optional

from .config import (
    LEETCODE_GRAPHQL_URL,
    LEETCODE_API_TIMEOUT,
    LEETCODE_API_MAX_RETRIES,
    LEETCODE_API_RETRY_DELAY,
    LEETCODE_USER_AGENT,
    RECENT_SUBMISSIONS_LIMIT,
)
from .domain import Profile, ProblemCounts, TagStat
from .errors import LeetCodeAPIError, LeetCodeTimeoutError
from .scoring import sort_tag_stats

logger = logging.getLogger(__name__)

PROFILE_QUERY = """
query getUserProfile($username: String!) {
  matchedUser(username: $username) {
    username
    submitStats {
      acSubmissionNum {
        difficulty
        count
      }
    }
  }
}
"""

RECENT_AC_QUERY = """
query recentAcSubmissions($username: String!, $limit: Int!) {
  recentSubmissionList(username: $username, limit: $limit) {
    title
    titleSlug
    timestamp
    statusDisplay
    lang
  }
}
"""

TAG_STATS_QUERY = """
query skillStats($username: String!) {
  matchedUser(username: $username) {
    tagProblemCounts {
      advanced { tagName tagSlug problemsSolved }
      intermediate { tagName tagSlug problemsSolved }
      fundamental { tagName tagSlug problemsSolved }
    }
  }
}
"""

TAG_GROUPS = ("fundamental", "intermediate", "advanced")


# =============================================================================
# PAYLOAD PARSING
# =============================================================================

def parse_profile_payload(data: Optional[Dict[str, Any]]) -> Optional[Profile]:
    """
    Parse a getUserProfile response.

    Returns:
        Profile, or None when the user does not exist or is private
    """
    user = (data or {}).get("matchedUser")
    if not user:
        return None

    counts = ((user.get("submitStats") or {}).get("acSubmissionNum")) or []
    by_difficulty = {str(c.get("difficulty")).lower(): c.get("count") for c in counts}

    return Profile(
        username=user.get("username"),
        solved=ProblemCounts.from_difficulty_counts(by_difficulty),
    )


def parse_tag_payload(data: Optional[Dict[str, Any]]) -> List[TagStat]:
    """
    Parse a skillStats response into TagStats.

    Fundamental, intermediate and advanced groups are merged; entries without a
    slug or a numeric solved count are dropped. Sorted by solved descending.
    """
    matched = (data or {}).get("matchedUser") or {}
    groups = matched.get("tagProblemCounts")
    if not groups:
        return []

    stats = []
    for group in TAG_GROUPS:
        for entry in groups.get(group) or []:
            if not entry:
                continue
            solved = entry.get("problemsSolved")
            slug = entry.get("tagSlug")
            if isinstance(solved, bool) or not isinstance(solved, int):
                continue
            if not isinstance(slug, str) or not slug:
                continue
            stats.append(TagStat(
                tag_slug=slug,
                tag_name=entry.get("tagName"),
                solved=solved,
            ))

    return sort_tag_stats(stats)


def parse_submissions_payload(data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep accepted submissions only, as {title, slug, lang, timestamp}."""
    submissions = (data or {}).get("recentSubmissionList") or []
    return [
        {
            "title": s.get("title"),
            "slug": s.get("titleSlug"),
            "lang": s.get("lang"),
            "timestamp": int(s.get("timestamp") or 0),
        }
        for s in submissions
        if s and (s.get("statusDisplay") or "").lower() == "accepted"
    ]


# =============================================================================
# CLIENT
# =============================================================================

class LeetCodeClient:
    """
    Thin GraphQL client for the public LeetCode API.

    A `requests.Session` may be injected for connection reuse or testing.
    """

    def __init__(
        self,
        url: str = LEETCODE_GRAPHQL_URL,
        timeout: float = LEETCODE_API_TIMEOUT,
        max_retries: int = LEETCODE_API_MAX_RETRIES,
        retry_delay: float = LEETCODE_API_RETRY_DELAY,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({
            "content-type": "application/json",
            "user-agent": LEETCODE_USER_AGENT,
            "accept": "application/json",
            "referer": "https://leetcode.com",
            "origin": "https://leetcode.com",
        })

    def _request(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a GraphQL query with timeout and retry logic.

        Transport failures are retried with exponential backoff. GraphQL-level
        errors are not retried.

        Returns:
            The `data` object of the response
        """
        last_error = None

        for attempt in range(self.max_retries):
            delay = self.retry_delay * (2 ** (attempt - 1)) if attempt > 0 else 0
            if delay > 0:
                logger.info(f"Retry {attempt + 1}/{self.max_retries} after {delay}s")
                time.sleep(delay)

            try:
                response = self.session.post(
                    self.url,
                    json={"query": query, "variables": variables},
                    timeout=self.timeout,
                )
            except requests.exceptions.Timeout:
                logger.warning(f"LeetCode API timeout (attempt {attempt + 1})")
                last_error = "timeout"
                continue
            except requests.exceptions.RequestException as e:
                logger.warning(f"LeetCode API request failed: {e}")
                last_error = str(e)
                continue

            if response.status_code >= 500:
                logger.warning(f"LeetCode API returned {response.status_code}")
                last_error = f"HTTP {response.status_code}"
                continue

            if not response.ok:
                raise LeetCodeAPIError(
                    f"LeetCode GraphQL failed ({response.status_code})",
                    response.text[:300]
                )

            try:
                payload = response.json()
            except ValueError:
                raise LeetCodeAPIError("LeetCode returned a non-JSON response", response.text[:300])
            if not isinstance(payload, dict):
                raise LeetCodeAPIError("Unexpected LeetCode response shape", response.text[:300])
            if payload.get("errors"):
                raise LeetCodeAPIError("LeetCode GraphQL errors", str(payload["errors"])[:400])

            return payload.get("data") or {}

        if last_error == "timeout":
            raise LeetCodeTimeoutError()
        raise LeetCodeAPIError(f"LeetCode API failed after {self.max_retries} attempts", last_error)

    def fetch_user_profile(self, username: str) -> Optional[Profile]:
        """
        Fetch solved counts per difficulty.

        Returns:
            Profile, or None if the user is not found or private
        """
        logger.info(f"Fetching profile from LeetCode: {username}")
        return parse_profile_payload(self._request(PROFILE_QUERY, {"username": username}))

    def fetch_topic_tag_breakdown(self, username: str) -> List[TagStat]:
        """Fetch per-topic solved counts (unordered upstream, sorted here)."""
        logger.info(f"Fetching topic tags from LeetCode: {username}")
        return parse_tag_payload(self._request(TAG_STATS_QUERY, {"username": username}))

    def fetch_recent_accepted_submissions(
        self,
        username: str,
        limit: int = RECENT_SUBMISSIONS_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Fetch the most recent accepted submissions."""
        logger.info(f"Fetching recent submissions from LeetCode: {username}")
        data = self._request(RECENT_AC_QUERY, {"username": username, "limit": limit})
        return parse_submissions_payload(data)


_default_client: Optional[LeetCodeClient] = None


def get_leetcode_client() -> LeetCodeClient:
    """Dependency returning the shared client."""
    global _default_client
    if _default_client is None:
        _default_client = LeetCodeClient()
    return _default_client
