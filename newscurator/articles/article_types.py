"""Shared article data types.

Articles reach the core from either store (SQLite rows, Postgres rows) or
from JSON documents exported by the admin pages, so `from_mapping` accepts
both snake_case and camelCase keys.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AbstractSet, Any, Dict, Mapping, Optional, Tuple, Union


logger = logging.getLogger(__name__)


SpotValue = Union[int, str]

_UTC_MIN = datetime.min.replace(tzinfo=timezone.utc)

# ASCII digits only; "²" and other Unicode digits are letter codes.
_SPOT_NUMBER_RE = re.compile(r"[0-9]+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a datetime or ISO-8601 string into an aware UTC datetime.

    Returns None for missing or unparseable values. Naive values are
    assumed to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat(value: Any) -> Optional[str]:
    dt = parse_timestamp(value)
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


def slugify(title: str) -> str:
    """URL-friendly slug: lowercase, dashes, at most 50 characters."""
    slug = (title or "").lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()[:50]


def _first(mapping: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def is_spot_number(text: str) -> bool:
    return bool(_SPOT_NUMBER_RE.fullmatch(text))


def _as_spot(value: Any) -> Optional[SpotValue]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    if is_spot_number(text):
        return int(text)
    return text


@dataclass(frozen=True)
class Article:
    """Read-only view of a stored article, as consumed by the core."""

    id: str
    slug: str
    title: str
    category: Optional[str] = None
    tags: str = ""
    excerpt: str = ""
    author: str = "Admin"
    image_url: str = ""
    content: str = ""
    primary_source: Optional[str] = None
    spot_number: Optional[SpotValue] = None
    published: bool = False
    published_at: Optional[Union[datetime, str]] = None
    created_at: Optional[Union[datetime, str]] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Article":
        title = str(_first(data, "title", default="")).strip()
        slug = str(_first(data, "slug", default="") or slugify(title))
        category = _first(data, "category")
        return cls(
            id=str(_first(data, "id", "_id", default=slug)),
            slug=slug,
            title=title,
            category=str(category) if category is not None else None,
            tags=str(_first(data, "tags", default="")),
            excerpt=str(_first(data, "excerpt", default="")),
            author=str(_first(data, "author", default="Admin")),
            image_url=str(_first(data, "image_url", "imageUrl", default="")),
            content=str(_first(data, "content", default="")),
            primary_source=_first(data, "primary_source", "primarySource"),
            spot_number=_as_spot(_first(data, "spot_number", "spotNumber")),
            published=_as_bool(_first(data, "published", default=False)),
            published_at=_first(data, "published_at", "publishedAt"),
            created_at=_first(data, "created_at", "createdAt"),
        )

    @property
    def has_primary_source(self) -> bool:
        return isinstance(self.primary_source, str) and bool(self.primary_source.strip())

    @property
    def timestamp(self) -> Optional[datetime]:
        """publishedAt, or createdAt when publishedAt is absent."""
        if self.published_at is not None and self.published_at != "":
            return parse_timestamp(self.published_at)
        return parse_timestamp(self.created_at)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "category": self.category,
            "publishedAt": isoformat(self.published_at),
        }

    def listing(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "category": self.category,
            "publishedAt": isoformat(self.published_at),
            "imageUrl": self.image_url,
            "tags": self.tags,
        }

    def card(self) -> Dict[str, Any]:
        """Fields the homepage grid renders for one spot."""
        data = self.listing()
        data["author"] = self.author
        return data


def recency_key(article: Article) -> Tuple[int, datetime]:
    """Sort key for most-recent-first ordering (use with reverse=True).

    Articles without a usable date sort after every dated article.
    """
    ts = article.timestamp
    if ts is None:
        return (0, _UTC_MIN)
    return (1, ts)


def validate_article_data(article: Mapping[str, Any], allowed_categories: AbstractSet[str]) -> Dict[str, Any]:
    """Validate and clean an incoming article document before a store writes it.

    Shared by the SQLite and Postgres stores so both accept and reject the
    same documents. Raises ValueError for a short title or slug, or for a
    category outside `allowed_categories`. Tag lists are joined with ", ",
    spot codes are kept as trimmed text and `published_at` is left as an
    ISO string (unparseable values are stored as-is with a warning).
    """
    title = str(article.get("title") or "").strip()
    if len(title) < 5:
        raise ValueError("Title too short or missing")

    slug = str(article.get("slug") or "").strip() or slugify(title)
    if len(slug) < 3:
        raise ValueError(f"Slug too short: {slug!r}")

    category = article.get("category")
    if category and category not in allowed_categories:
        raise ValueError(f"Unknown category: {category!r}")

    spot = _first(article, "spot_number", "spotNumber")
    spot = str(spot).strip() if spot is not None and str(spot).strip() else None

    published_at = _first(article, "published_at", "publishedAt")
    if isinstance(published_at, datetime):
        published_at = isoformat(published_at)
    elif published_at and parse_timestamp(published_at) is None:
        logger.warning(f"Unparseable published_at {published_at!r} for {slug}; storing as-is")

    tags = article.get("tags") or ""
    if isinstance(tags, (list, tuple)):
        tags = ", ".join(str(t) for t in tags)

    return {
        "id": str(_first(article, "id", "_id") or uuid.uuid4().hex),
        "title": title,
        "slug": slug,
        "category": category or None,
        "author": str(article.get("author") or "Admin"),
        "spot_number": spot,
        "tags": str(tags),
        "image_url": str(_first(article, "image_url", "imageUrl", default="")),
        "excerpt": str(article.get("excerpt") or ""),
        "content": str(article.get("content") or ""),
        "primary_source": str(_first(article, "primary_source", "primarySource", default="")),
        "published": _as_bool(article.get("published")),
        "published_at": published_at or None,
    }
