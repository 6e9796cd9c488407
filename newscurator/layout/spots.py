"""Homepage spot assignment (pure functions).

The homepage grid has integer positions ("spots"):
- spots 1..9 are the featured tier, filled from manually assigned spot numbers
- spots 10.. are filled automatically, one contiguous run per category

Automatic numbering walks the categories in configuration order, takes the
most recent `max_articles` articles of each, and hands out the next run of
spot numbers. Categories without articles are skipped and leave no gap.
Re-running on the same inputs always yields the same numbering, so nothing
here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from newscurator.articles.article_types import Article, is_spot_number, recency_key
from newscurator.contracts.categories import CategoryConfig


FEATURED_SPOT_COUNT = 9
FIRST_CATEGORY_SPOT = FEATURED_SPOT_COUNT + 1


@dataclass(frozen=True)
class AutomaticSpot:
    """A position computed by assign_spots."""

    number: int


@dataclass(frozen=True)
class ManualSpot:
    """A position typed in by an editor: a number ("3") or a letter code ("A")."""

    code: str

    @property
    def position(self) -> Optional[int]:
        return int(self.code) if is_spot_number(self.code) else None


def parse_manual_spot(value) -> Optional[ManualSpot]:
    if value is None or isinstance(value, bool):
        return None
    code = str(value).strip()
    if not code:
        return None
    return ManualSpot(code=code.upper())


@dataclass
class CategoryBuckets:
    buckets: Dict[str, List[Article]]
    unplaced: List[Article] = field(default_factory=list)


@dataclass(frozen=True)
class SpotAssignment:
    category: str
    display_name: str
    articles: Tuple[Article, ...]
    start_spot: int
    end_spot: int

    def spots(self) -> Iterator[Tuple[AutomaticSpot, Article]]:
        for offset, article in enumerate(self.articles):
            yield AutomaticSpot(self.start_spot + offset), article

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "displayName": self.display_name,
            "articles": [dict(a.card(), spot=spot.number) for spot, a in self.spots()],
            "startSpot": self.start_spot,
            "endSpot": self.end_spot,
        }


@dataclass
class SpotLayout:
    sections: List[SpotAssignment]
    unplaced: List[Article] = field(default_factory=list)
    overflow: Dict[str, int] = field(default_factory=dict)

    @property
    def assigned_count(self) -> int:
        return sum(len(s.articles) for s in self.sections)

    def spot_numbers(self) -> List[int]:
        return [spot.number for s in self.sections for spot, _ in s.spots()]

    def section(self, category: str) -> Optional[SpotAssignment]:
        for s in self.sections:
            if s.category == category:
                return s
        return None


def group_by_category(articles: Iterable[Article], categories: Sequence[CategoryConfig]) -> CategoryBuckets:
    """Bucket articles by configured category name, most recent first.

    Articles with a missing or unknown category go to `unplaced`, never into
    another bucket.
    """
    buckets: Dict[str, List[Article]] = {c.name: [] for c in categories}
    unplaced: List[Article] = []
    for article in articles:
        bucket = buckets.get(article.category) if article.category else None
        if bucket is None:
            unplaced.append(article)
            continue
        bucket.append(article)
    for name in buckets:
        buckets[name].sort(key=recency_key, reverse=True)
    return CategoryBuckets(buckets=buckets, unplaced=unplaced)


def assign_spots(
    articles: Iterable[Article],
    categories: Sequence[CategoryConfig],
    first_spot: int = FIRST_CATEGORY_SPOT,
) -> SpotLayout:
    grouped = group_by_category(articles, categories)
    sections: List[SpotAssignment] = []
    overflow: Dict[str, int] = {}
    current = first_spot
    for config in categories:
        pool = grouped.buckets.get(config.name, [])
        kept = pool[:config.max_articles]
        if len(pool) > len(kept):
            overflow[config.name] = len(pool) - len(kept)
        if not kept:
            continue
        sections.append(
            SpotAssignment(
                category=config.name,
                display_name=config.display_name,
                articles=tuple(kept),
                start_spot=current,
                end_spot=current + len(kept) - 1,
            )
        )
        current += len(kept)
    return SpotLayout(sections=sections, unplaced=grouped.unplaced, overflow=overflow)


@dataclass
class FeaturedLayout:
    slots: Dict[int, Article] = field(default_factory=dict)
    lettered: Dict[str, List[Article]] = field(default_factory=dict)

    @property
    def articles(self) -> List[Article]:
        return [self.slots[n] for n in sorted(self.slots)]

    def to_list(self) -> List[dict]:
        return [{"spot": n, "article": self.slots[n].card()} for n in sorted(self.slots)]


def place_featured(articles: Iterable[Article], slots: int = FEATURED_SPOT_COUNT) -> FeaturedLayout:
    """Fill the featured tier from manually assigned spot numbers.

    Numeric spots in 1..slots claim that slot; when two articles claim the
    same slot the most recent keeps it. Letter codes are collected separately.
    """
    layout = FeaturedLayout()
    for article in sorted(articles, key=recency_key, reverse=True):
        manual = parse_manual_spot(article.spot_number)
        if manual is None:
            continue
        position = manual.position
        if position is None:
            layout.lettered.setdefault(manual.code, []).append(article)
            continue
        if 1 <= position <= slots and position not in layout.slots:
            layout.slots[position] = article
    return layout
