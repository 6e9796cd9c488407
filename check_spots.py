#!/usr/bin/env python3
"""
Print the homepage layout the site would render right now.

Shows manually assigned spot numbers (featured tier and letter codes), the
automatically numbered category sections, and articles that cannot be placed.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from database import ArticleDatabase
from newscurator.contracts.categories import load_categories
from newscurator.layout.homepage import build_homepage


def main() -> int:
    load_dotenv()
    categories = load_categories()
    db = ArticleDatabase(db_path=os.environ.get("DB_PATH", "news_curator.db"), categories=categories)

    manual = db.get_articles_with_spot_numbers()
    print("📍 Articles with manually assigned spot numbers:")
    if not manual:
        print("  (none)")
    for article in manual:
        state = "" if article.published else " [unpublished]"
        print(f"  Spot {article.spot_number}: {article.title}{state}")

    homepage = build_homepage(db.get_published_articles(), categories)

    print("\n⭐ Featured tier:")
    for spot, article in sorted(homepage.featured.slots.items()):
        print(f"  {spot:>2}: {article.title}")
    for code, articles in sorted(homepage.featured.lettered.items()):
        print(f"  {code:>2}: " + ", ".join(a.title for a in articles))

    print("\n🗂️  Category sections:")
    if not homepage.layout.sections:
        print("  (no category articles)")
    for section in homepage.layout.sections:
        print(f"  {section.display_name}: spots {section.start_spot}-{section.end_spot}")
        for spot, article in section.spots():
            print(f"    {spot.number:>3}: {article.title}")
        hidden = homepage.layout.overflow.get(section.category)
        if hidden:
            print(f"    ... {hidden} more not shown")

    if homepage.layout.unplaced:
        print("\n⚠️  Not placed (missing or unknown category):")
        for article in homepage.layout.unplaced:
            print(f"  - {article.title} ({article.category or 'no category'})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
