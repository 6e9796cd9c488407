#!/usr/bin/env python3
"""
Write published articles to a JSON file for the static site pages.

Reads from SQLite (DB_PATH) and prints the camelCase export produced by
ArticleDatabase.export_articles, either to stdout or to --out.
"""

from __future__ import annotations

import argparse
import os

from dotenv import load_dotenv

from database import ArticleDatabase
from newscurator.contracts.categories import load_categories


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Export published articles as JSON")
    parser.add_argument("--db", default=os.environ.get("DB_PATH", "news_curator.db"), help="Path to SQLite DB")
    parser.add_argument("--out", default="", help="Output file (stdout when omitted)")
    args = parser.parse_args()

    db = ArticleDatabase(db_path=args.db, categories=load_categories())
    payload = db.export_articles()
    if not args.out:
        print(payload)
        return 0

    with open(args.out, "w", encoding="utf-8") as f:
        f.write(payload)
    print(f"✅ Exported {len(db.get_published_articles())} article(s) to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
