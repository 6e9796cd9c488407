#!/usr/bin/env python3
"""
Load articles from a JSON export into the article store.

Accepts a JSON array of article documents (snake_case or camelCase keys, as
exported by the admin pages). Articles are upserted by slug, so the script can
be re-run safely.
"""

from __future__ import annotations

import argparse
import json
import os

from dotenv import load_dotenv

from database import ArticleDatabase
from newscurator.contracts.categories import load_categories


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed the article store from a JSON file")
    parser.add_argument("path", help="JSON file holding an array of articles")
    parser.add_argument("--db", default=os.environ.get("DB_PATH", "news_curator.db"), help="Path to SQLite DB")
    parser.add_argument("--pg-dsn", default=os.environ.get("PG_DSN", ""), help="Postgres DSN (overrides --db)")
    args = parser.parse_args()

    with open(args.path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, list):
        print(f"❌ {args.path} must contain a JSON array of articles")
        return 1

    categories = load_categories()
    if args.pg_dsn:
        from newscurator.storage.postgres_articles import PostgresArticleStore
        from newscurator.storage.postgres_schema import ensure_postgres_schema

        ensure_postgres_schema(args.pg_dsn)
        store = PostgresArticleStore(args.pg_dsn, categories=categories)
    else:
        store = ArticleDatabase(db_path=args.db, categories=categories)
    stored, errors = store.store_articles(payload)

    print(f"✅ Stored {stored} article(s)")
    for err in errors:
        print(f"  ⚠️  skipped {err}")
    return 0 if not errors else 2


if __name__ == "__main__":
    raise SystemExit(main())
