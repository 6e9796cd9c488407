"""In-memory article store with the same query interface as the database stores."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from newscurator.articles.article_types import Article, recency_key


class InMemoryArticleStore:
    def __init__(self, articles: Iterable[Union[Article, Mapping[str, Any]]] = ()):
        self._articles: List[Article] = []
        for item in articles:
            self.add(item)

    def add(self, item: Union[Article, Mapping[str, Any]]) -> Article:
        article = item if isinstance(item, Article) else Article.from_mapping(item)
        self._articles = [a for a in self._articles if a.slug != article.slug]
        self._articles.append(article)
        return article

    def store_article(self, item: Mapping[str, Any]) -> str:
        return self.add(item).id

    def get_published_articles(self, category: Optional[str] = None) -> List[Article]:
        found = [a for a in self._articles if a.published and (not category or a.category == category)]
        return sorted(found, key=recency_key, reverse=True)

    def get_articles_by_primary_source(self, source: str) -> List[Article]:
        found = [a for a in self._articles if a.published and a.primary_source == source]
        return sorted(found, key=recency_key, reverse=True)

    def get_articles_with_spot_numbers(self) -> List[Article]:
        return [a for a in self._articles if a.spot_number is not None]

    def get_category_counts(self) -> Dict[str, int]:
        return dict(Counter(a.category for a in self._articles if a.published and a.category))
