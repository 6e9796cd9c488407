"""Postgres-backed article store.

Same query interface as the SQLite `ArticleDatabase`, so the primary source
aggregator and homepage builder work against either.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Dict, List, Optional, Sequence, Tuple

import psycopg
from psycopg.rows import dict_row
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from newscurator.articles.article_types import Article, parse_timestamp, validate_article_data
from newscurator.contracts.categories import CategoryConfig, allowed_article_categories


logger = logging.getLogger(__name__)

_COLUMNS = """
    id, title, slug, category, author, spot_number, tags, image_url, excerpt,
    content, primary_source, published, published_at, created_at
"""


@dataclass
class PostgresArticleStore:
    pg_dsn: str
    categories: Optional[Sequence[CategoryConfig]] = None
    allowed_categories: AbstractSet[str] = field(init=False)

    def __post_init__(self):
        self.allowed_categories = allowed_article_categories(self.categories)

    @retry(
        retry=retry_if_exception_type(psycopg.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=8),
        reraise=True,
    )
    def _connect(self):
        return psycopg.connect(self.pg_dsn, row_factory=dict_row)

    def _fetch(self, sql: str, params: List[Any]) -> List[Article]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
        return [Article.from_mapping(row) for row in rows]

    def get_published_articles(self, category: Optional[str] = None) -> List[Article]:
        where = ["published = TRUE"]
        params: List[Any] = []
        if category:
            where.append("category = %s")
            params.append(category)
        sql = f"""
        SELECT {_COLUMNS}
        FROM articles
        WHERE {' AND '.join(where)}
        ORDER BY published_at DESC NULLS LAST, created_at DESC
        """
        return self._fetch(sql, params)

    def get_articles_by_primary_source(self, source: str) -> List[Article]:
        sql = f"""
        SELECT {_COLUMNS}
        FROM articles
        WHERE published = TRUE AND primary_source = %s
        ORDER BY published_at DESC NULLS LAST
        """
        return self._fetch(sql, [source])

    def get_articles_with_spot_numbers(self) -> List[Article]:
        sql = f"""
        SELECT {_COLUMNS}
        FROM articles
        WHERE spot_number IS NOT NULL AND spot_number <> ''
        ORDER BY spot_number
        """
        return self._fetch(sql, [])

    def get_category_counts(self) -> Dict[str, int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT category, COUNT(*) AS count
                    FROM articles
                    WHERE published = TRUE AND category IS NOT NULL
                    GROUP BY category
                    """
                )
                rows = cur.fetchall()
        return {r["category"]: int(r["count"] or 0) for r in rows}

    def store_article(self, article: Dict[str, Any]) -> str:
        """Upsert an article by slug. Returns its id."""
        params = validate_article_data(article, self.allowed_categories)
        # TIMESTAMPTZ column; unparseable values are stored as NULL.
        params["published_at"] = parse_timestamp(params["published_at"])
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO articles (
                      id, title, slug, category, author, spot_number, tags, image_url,
                      excerpt, content, primary_source, published, published_at
                    )
                    VALUES (
                      %(id)s, %(title)s, %(slug)s, %(category)s, %(author)s, %(spot_number)s, %(tags)s, %(image_url)s,
                      %(excerpt)s, %(content)s, %(primary_source)s, %(published)s, %(published_at)s
                    )
                    ON CONFLICT (slug) DO UPDATE SET
                      title = EXCLUDED.title,
                      category = EXCLUDED.category,
                      author = EXCLUDED.author,
                      spot_number = EXCLUDED.spot_number,
                      tags = EXCLUDED.tags,
                      image_url = EXCLUDED.image_url,
                      excerpt = EXCLUDED.excerpt,
                      content = EXCLUDED.content,
                      primary_source = EXCLUDED.primary_source,
                      published = EXCLUDED.published,
                      published_at = EXCLUDED.published_at,
                      updated_at = now()
                    RETURNING id
                    """,
                    params,
                )
                article_id = cur.fetchone()["id"]
            conn.commit()
        return article_id

    def store_articles(self, articles: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
        """Store many articles. Returns (stored_count, errors)."""
        stored = 0
        errors: List[str] = []
        for article in articles:
            try:
                self.store_article(article)
                stored += 1
            except ValueError as e:
                errors.append(f"{article.get('slug') or article.get('title')}: {e}")
        if errors:
            logger.warning(f"Skipped {len(errors)} invalid article(s)")
        return stored, errors
