"""
Data models for Contxtra
Sessions, trial usage, history entries, analysis results, and user profiles
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as dateparser

from errors import TransportError


@dataclass(frozen=True)
class Session:
    """Current identity as reported by the identity provider."""
    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()


@dataclass(frozen=True)
class TrialUsage:
    """Server-tracked anonymous usage for one IP address."""
    remaining_uses: int
    trial_expired: bool

    def __post_init__(self):
        if self.remaining_uses < 0:
            raise ValueError("remaining_uses cannot be negative")
        if self.trial_expired and self.remaining_uses != 0:
            raise ValueError("an expired trial cannot have remaining uses")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TrialUsage":
        """Build from an RPC response, normalizing inconsistent counts."""
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected trial usage payload: {payload!r}")
        expired = bool(payload.get("trial_expired", False))
        remaining = max(0, int(payload.get("remaining_uses") or 0))
        if expired:
            remaining = 0
        return cls(remaining_uses=remaining, trial_expired=expired)


@dataclass(frozen=True)
class HistoryItem:
    url: str
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryItem":
        url = data["url"]
        if not isinstance(url, str) or not url:
            raise ValueError("history entry without a url")
        return cls(url=url, timestamp=int(data["timestamp"]))


@dataclass(frozen=True)
class Article:
    """A news article matched to the analyzed post."""
    title: str
    description: str
    content: str
    url: str
    source: str
    score: float = 0.0
    image_url: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Article":
        source = data.get("source") or ""
        # NewsAPI-style sources arrive as {"id": ..., "name": ...}
        if isinstance(source, dict):
            source = source.get("name") or source.get("id") or ""

        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            content=data.get("content") or "",
            url=data.get("url") or "",
            source=str(source),
            score=float(data.get("score") or 0.0),
            image_url=data.get("urlToImage") or data.get("image_url") or None,
        )


@dataclass(frozen=True)
class AnalysisResult:
    matched_articles: List[Article] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.matched_articles

    @classmethod
    def from_payload(cls, payload: Any) -> "AnalysisResult":
        """
        Parse the body of a successful /find-articles response

        Raises:
            TransportError: If the body is not shaped like an analysis result
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("matched_articles"), list):
            raise TransportError("Malformed response from the analysis service.")

        try:
            articles = [Article.from_payload(a) for a in payload["matched_articles"]]
        except (AttributeError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed article in analysis response: {e}")

        return cls(matched_articles=articles)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    return dateparser.parse(str(value))


@dataclass(frozen=True)
class UserProfile:
    """A row of the profiles table as seen by the admin dashboard."""
    id: str
    email: str
    full_name: Optional[str]
    created_at: datetime
    links_analyzed: int = 0
    visit_count: int = 0
    positive_ratings: int = 0
    negative_ratings: int = 0
    is_admin: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserProfile":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            full_name=row.get("full_name"),
            created_at=_parse_timestamp(row.get("created_at")),
            links_analyzed=int(row.get("links_analyzed") or 0),
            visit_count=int(row.get("visit_count") or 0),
            positive_ratings=int(row.get("positive_ratings") or 0),
            negative_ratings=int(row.get("negative_ratings") or 0),
            is_admin=bool(row.get("is_admin")),
        )


@dataclass(frozen=True)
class UserMetrics:
    """Counters shown in the header for a signed-in user."""
    links_analyzed: int = 0
    visit_count: int = 0
    positive_ratings: int = 0
    negative_ratings: int = 0
    is_admin: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserMetrics":
        return cls(
            links_analyzed=int(row.get("links_analyzed") or 0),
            visit_count=int(row.get("visit_count") or 0),
            positive_ratings=int(row.get("positive_ratings") or 0),
            negative_ratings=int(row.get("negative_ratings") or 0),
            is_admin=bool(row.get("is_admin")),
        )
