"""Primary source aggregation: group published articles by their cited source.

Grouping happens in Python over whatever the article store returns, so the
same logic runs against SQLite, Postgres or an in-memory list.

Two grouping modes exist:
- "raw" (default): group by the exact stored primary_source string.
- "normalized": group by normalize_source(primary_source), so that
  "example.com" and "https://www.example.com/" merge. The most recent
  member's raw string is kept as the group's display identity.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from newscurator.articles.article_types import Article, isoformat, recency_key
from newscurator.contracts.categories import CategoryConfig, find_category
from newscurator.sources.normalize import normalize_source, same_source


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SORT_MODES = ("date", "category")
GROUPING_MODES = ("raw", "normalized")
_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")


class InvalidInput(ValueError):
    """Rejected caller input (surfaced as HTTP 400)."""


@dataclass
class SourceGroup:
    source_id: str
    count: int = 0
    categories: List[str] = field(default_factory=list)
    articles: List[Article] = field(default_factory=list)

    @property
    def latest_article(self) -> Optional[Article]:
        return self.articles[0] if self.articles else None

    def add(self, article: Article) -> None:
        self.count += 1
        if article.category and article.category not in self.categories:
            self.categories.append(article.category)
        self.articles.append(article)

    def to_dict(self) -> Dict[str, Any]:
        latest = self.latest_article
        return {
            "sourceId": self.source_id,
            "count": self.count,
            "categories": list(self.categories),
            "latestArticle": {
                "title": latest.title,
                "slug": latest.slug,
                "publishedAt": isoformat(latest.published_at),
            } if latest else None,
            "articles": [a.summary() for a in self.articles],
        }


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return int(math.ceil(self.total / self.limit)) if self.limit else 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def to_dict(self) -> Dict[str, Any]:
        total_pages = self.total_pages
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": total_pages,
            "hasNextPage": self.page < total_pages,
            "hasPrevPage": self.page > 1,
        }


@dataclass
class SourcePage:
    source: str
    articles: List[Article]
    pagination: Pagination
    sort: str = "date"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articles": [a.listing() for a in self.articles],
            "pagination": self.pagination.to_dict(),
            "source": self.source,
        }


def _parse_positive_int(value: Any, default: int) -> int:
    """Leading-integer parse ("2abc" -> 2, "1.5" -> 1); missing, unparseable or zero falls back to default."""
    if value is None or isinstance(value, bool):
        return default
    match = _LEADING_INT_RE.match(str(value))
    if match is None:
        return default
    return int(match.group(1)) or default


def clamp_pagination(page: Any = None, limit: Any = None, sort: Any = None) -> Tuple[int, int, str]:
    """Normalize pagination inputs into valid ranges instead of rejecting them."""
    page_i = max(1, _parse_positive_int(page, DEFAULT_PAGE))
    limit_i = min(MAX_LIMIT, max(1, _parse_positive_int(limit, DEFAULT_LIMIT)))
    sort_s = sort if sort in SORT_MODES else "date"
    return page_i, limit_i, sort_s


def sort_articles(articles: Sequence[Article], sort: str = "date") -> List[Article]:
    # Two stable passes: recency first, then category as the primary key.
    ordered = sorted(articles, key=recency_key, reverse=True)
    if sort == "category":
        ordered.sort(key=lambda a: a.category or "")
    return ordered


class PrimarySourceAggregator:
    """Answers the list / search / per-source queries over published articles."""

    def __init__(self, store, categories: Sequence[CategoryConfig], group_by: str = "raw"):
        if group_by not in GROUPING_MODES:
            raise ValueError(f"Unknown grouping mode: {group_by!r}")
        self.store = store
        self.categories = list(categories)
        self.group_by = group_by

    def _key(self, source: str) -> str:
        return normalize_source(source) if self.group_by == "normalized" else source

    def _eligible(self, category: Optional[str] = None) -> List[Article]:
        articles = self.store.get_published_articles(category=category)
        return [
            a for a in articles
            if a.published and a.has_primary_source and (not category or a.category == category)
        ]

    def _group(self, articles: Sequence[Article], accept: Optional[Callable[[str], bool]] = None) -> List[SourceGroup]:
        groups: Dict[str, SourceGroup] = {}
        for article in sorted(articles, key=recency_key, reverse=True):
            source = article.primary_source
            if accept is not None and not accept(source):
                continue
            key = self._key(source)
            group = groups.get(key)
            if group is None:
                group = groups[key] = SourceGroup(source_id=source)
            group.add(article)
        # Ties keep first-appearance (most recent member) order.
        return sorted(groups.values(), key=lambda g: g.count, reverse=True)

    def _resolve_category(self, category: Optional[str]) -> Optional[str]:
        """Map a filter value onto the configured name, ignoring case."""
        if not isinstance(category, str) or not category.strip():
            return None
        wanted = category.strip()
        found = find_category(self.categories, wanted)
        return found.name if found else wanted

    def list_sources(self, category: Optional[str] = None) -> List[SourceGroup]:
        return self._group(self._eligible(self._resolve_category(category)))

    def search_sources(self, query: Optional[str]) -> List[SourceGroup]:
        if not isinstance(query, str) or not query.strip():
            raise InvalidInput("Search query is required")
        needle = query.strip().lower()
        return self._group(self._eligible(), accept=lambda source: needle in source.lower())

    def articles_for_source(self, source_id: str, page: Any = None, limit: Any = None, sort: Any = None) -> SourcePage:
        page_i, limit_i, sort_s = clamp_pagination(page, limit, sort)
        source_id = source_id or ""
        if self.group_by == "normalized":
            matches = [a for a in self._eligible() if same_source(a.primary_source, source_id)]
        else:
            matches = [
                a for a in self.store.get_articles_by_primary_source(source_id)
                if a.published and a.primary_source == source_id
            ]
        ordered = sort_articles(matches, sort_s)
        pagination = Pagination(total=len(ordered), page=page_i, limit=limit_i)
        window = ordered[pagination.offset:pagination.offset + limit_i]
        return SourcePage(source=source_id, articles=window, pagination=pagination, sort=sort_s)
