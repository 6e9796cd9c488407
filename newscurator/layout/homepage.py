"""Homepage composition: featured tier plus automatically numbered category sections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Sequence

from newscurator.articles.article_types import Article
from newscurator.contracts.categories import CategoryConfig
from newscurator.layout.spots import FeaturedLayout, SpotLayout, assign_spots, place_featured


logger = logging.getLogger(__name__)


@dataclass
class Homepage:
    featured: FeaturedLayout
    layout: SpotLayout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "featured": self.featured.to_list(),
            "sections": [s.to_dict() for s in self.layout.sections],
            "unplaced": len(self.layout.unplaced),
        }


def build_homepage(articles: Iterable[Article], categories: Sequence[CategoryConfig]) -> Homepage:
    published = [a for a in articles if a.published]
    featured = place_featured(published)
    featured_ids = {a.id for a in featured.articles}
    pool = [a for a in published if a.id not in featured_ids]

    layout = assign_spots(pool, categories)

    for article in layout.unplaced:
        if not article.category:
            logger.warning(f"Article {article.title or article.id!r} (id={article.id}) has no category - skipping")
        else:
            logger.warning(f"Article {article.title or article.id!r} has unrecognized category {article.category!r} - skipping")
    for name, extra in layout.overflow.items():
        logger.debug(f"{name}: {extra} article(s) beyond section capacity not shown")

    numbers = layout.spot_numbers()
    if numbers:
        logger.info(
            f"Homepage layout: {len(featured.slots)} featured, {layout.assigned_count} articles in "
            f"{len(layout.sections)} sections (spots {numbers[0]}-{numbers[-1]}), "
            f"{len(categories) - len(layout.sections)} empty sections skipped"
        )
    else:
        logger.info(f"Homepage layout: {len(featured.slots)} featured, no category articles")
    return Homepage(featured=featured, layout=layout)
