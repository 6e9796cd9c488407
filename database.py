#!/usr/bin/env python3
"""
SQLite article store for the News Curator platform.
Provides the read queries used by the primary source and homepage endpoints,
plus an upsert used by seeding scripts and tests.
"""

import sqlite3
import json
from typing import List, Dict, Optional, Any, Sequence
import logging
from contextlib import contextmanager
import time
from pathlib import Path

from newscurator.articles.article_types import Article, validate_article_data
from newscurator.contracts.categories import CategoryConfig, allowed_article_categories

logger = logging.getLogger(__name__)

class DatabaseError(Exception):
    """Custom exception for database operations"""
    pass

class ArticleDatabase:
    """SQLite-backed article store"""

    def __init__(self, db_path: str = "news_curator.db", categories: Optional[Sequence[CategoryConfig]] = None):
        self.db_path = db_path
        self.max_retries = 3
        self.retry_delay = 1.0
        self.allowed_categories = allowed_article_categories(categories)
        self._ensure_db_directory()
        self.init_database()

    def _ensure_db_directory(self):
        """Ensure database directory exists"""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    def init_database(self):
        """Initialize the articles table and indexes"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS articles (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    slug TEXT UNIQUE NOT NULL,
                    category TEXT,
                    author TEXT DEFAULT 'Admin',
                    spot_number TEXT,
                    tags TEXT DEFAULT '',
                    image_url TEXT DEFAULT '',
                    excerpt TEXT DEFAULT '',
                    content TEXT DEFAULT '',
                    primary_source TEXT DEFAULT '',
                    published INTEGER DEFAULT 0,
                    published_at TEXT,
                    created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
                    updated_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                )
            ''')

            indexes = [
                'CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category)',
                'CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published)',
                'CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles(published_at)',
                'CREATE INDEX IF NOT EXISTS idx_articles_spot ON articles(spot_number)',
                'CREATE INDEX IF NOT EXISTS idx_articles_primary_source ON articles(primary_source)',
                'CREATE INDEX IF NOT EXISTS idx_articles_primary_source_published ON articles(primary_source, published)',
            ]
            for index_sql in indexes:
                cursor.execute(index_sql)
            conn.commit()

    @contextmanager
    def get_connection(self):
        """Get database connection with retries on lock contention"""
        conn = None
        for attempt in range(self.max_retries):
            try:
                conn = sqlite3.connect(
                    self.db_path,
                    timeout=30.0,
                    check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
                conn.execute('PRAGMA journal_mode=WAL;')  # Write-Ahead Logging for concurrent reads
                conn.execute('PRAGMA synchronous=NORMAL;')
                conn.execute('PRAGMA temp_store=MEMORY;')
                break
            except sqlite3.OperationalError as e:
                if conn:
                    conn.close()
                    conn = None
                if "database is locked" in str(e) and attempt < self.max_retries - 1:
                    logger.warning(f"Database locked, retrying in {self.retry_delay}s (attempt {attempt + 1})")
                    time.sleep(self.retry_delay)
                    continue
                raise DatabaseError(f"Database connection failed: {e}")
        try:
            yield conn
        except sqlite3.Error as e:
            raise DatabaseError(f"Unexpected database error: {e}")
        finally:
            conn.close()

    def store_article(self, article: Dict[str, Any]) -> str:
        """Insert or update an article by slug. Returns the article id."""
        row = validate_article_data(article, self.allowed_categories)
        row['published'] = 1 if row['published'] else 0
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO articles (
                    id, title, slug, category, author, spot_number, tags, image_url,
                    excerpt, content, primary_source, published, published_at
                )
                VALUES (
                    :id, :title, :slug, :category, :author, :spot_number, :tags, :image_url,
                    :excerpt, :content, :primary_source, :published, :published_at
                )
                ON CONFLICT(slug) DO UPDATE SET
                    title = excluded.title,
                    category = excluded.category,
                    author = excluded.author,
                    spot_number = excluded.spot_number,
                    tags = excluded.tags,
                    image_url = excluded.image_url,
                    excerpt = excluded.excerpt,
                    content = excluded.content,
                    primary_source = excluded.primary_source,
                    published = excluded.published,
                    published_at = excluded.published_at,
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
            ''', row)
            cursor.execute('SELECT id FROM articles WHERE slug = ?', (row['slug'],))
            article_id = cursor.fetchone()['id']
            conn.commit()
        return article_id

    def store_articles(self, articles: List[Dict[str, Any]]) -> tuple:
        """Store many articles. Returns (stored_count, errors)."""
        stored = 0
        errors = []
        for article in articles:
            try:
                self.store_article(article)
                stored += 1
            except ValueError as e:
                errors.append(f"{article.get('slug') or article.get('title')}: {e}")
        if errors:
            logger.warning(f"Skipped {len(errors)} invalid article(s)")
        return stored, errors

    def get_published_articles(self, category: str = None) -> List[Article]:
        """All published articles, optionally restricted to one category."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            query = 'SELECT * FROM articles WHERE published = 1'
            params = []
            if category:
                query += ' AND category = ?'
                params.append(category)
            query += ' ORDER BY published_at DESC, created_at DESC'
            cursor.execute(query, params)
            return [Article.from_mapping(dict(row)) for row in cursor.fetchall()]

    def get_articles_by_primary_source(self, source: str) -> List[Article]:
        """Published articles whose primary_source equals `source` exactly."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM articles
                WHERE published = 1 AND primary_source = ?
                ORDER BY published_at DESC
            ''', (source,))
            return [Article.from_mapping(dict(row)) for row in cursor.fetchall()]

    def get_articles_with_spot_numbers(self) -> List[Article]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM articles
                WHERE spot_number IS NOT NULL AND spot_number != ''
                ORDER BY spot_number
            ''')
            return [Article.from_mapping(dict(row)) for row in cursor.fetchall()]

    def get_category_counts(self) -> Dict[str, int]:
        """Published article counts per category"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT category, COUNT(*) AS count
                FROM articles
                WHERE published = 1 AND category IS NOT NULL
                GROUP BY category
            ''')
            return {row['category']: int(row['count']) for row in cursor.fetchall()}

    def export_articles(self) -> str:
        """Dump published articles as a JSON array (camelCase, as the static pages read them)"""
        articles = self.get_published_articles()
        payload = []
        for a in articles:
            item = a.listing()
            item['author'] = a.author
            item['primarySource'] = a.primary_source
            item['spotNumber'] = a.spot_number
            payload.append(item)
        return json.dumps(payload, indent=2)
