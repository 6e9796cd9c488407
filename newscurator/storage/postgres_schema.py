"""Postgres schema management for News Curator.

Schema creation is idempotent (CREATE IF NOT EXISTS), so it is safe to run at
every app start.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS articles (
      id TEXT PRIMARY KEY,
      title TEXT NOT NULL,
      slug TEXT NOT NULL UNIQUE,
      category TEXT,
      author TEXT NOT NULL DEFAULT 'Admin',
      spot_number TEXT,
      tags TEXT NOT NULL DEFAULT '',
      image_url TEXT NOT NULL DEFAULT '',
      excerpt TEXT NOT NULL DEFAULT '',
      content TEXT NOT NULL DEFAULT '',
      primary_source TEXT NOT NULL DEFAULT '',
      published BOOLEAN NOT NULL DEFAULT FALSE,
      published_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_category ON articles (category);",
    "CREATE INDEX IF NOT EXISTS idx_articles_published ON articles (published);",
    "CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles (published_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_articles_spot_number ON articles (spot_number);",
    "CREATE INDEX IF NOT EXISTS idx_articles_primary_source ON articles (primary_source, published);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
