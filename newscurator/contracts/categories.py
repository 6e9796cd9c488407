"""Category configuration contract.

The ordered category list drives three things at once:
- homepage section order and per-section capacity (spot assignment)
- the category filter accepted by the primary source endpoints
- the categories endpoint

It is defined once here and passed explicitly to every component that needs
it. An alternative list can be supplied as a JSON file (CATEGORY_CONFIG_PATH),
validated against CATEGORY_CONFIG_SCHEMA.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from jsonschema import Draft202012Validator


logger = logging.getLogger(__name__)


class CategoryConfigError(ValueError):
    """Raised when a category configuration file is invalid."""


CATEGORY_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "required": ["name", "maxArticles"],
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "displayName": {"type": "string", "minLength": 1},
            "minArticles": {"type": "integer", "minimum": 0},
            "maxArticles": {"type": "integer", "minimum": 1},
            "startSpot": {"type": ["integer", "null"], "minimum": 1},
        },
        "additionalProperties": False,
    },
}


@dataclass(frozen=True)
class CategoryConfig:
    name: str
    display_name: str
    min_articles: int = 3
    max_articles: int = 6
    # Informational; numbering is always computed sequentially.
    start_spot: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryConfig":
        return cls(
            name=data["name"],
            display_name=data.get("displayName") or data["name"],
            min_articles=int(data.get("minArticles", 3)),
            max_articles=int(data["maxArticles"]),
            start_spot=data.get("startSpot"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "minArticles": self.min_articles,
            "maxArticles": self.max_articles,
            "startSpot": self.start_spot,
        }


DEFAULT_CATEGORIES: List[CategoryConfig] = [
    CategoryConfig("World", "World News", start_spot=10),
    CategoryConfig("Technology", "Technology"),
    CategoryConfig("Business", "Business"),
    CategoryConfig("Economy", "Economy"),
    CategoryConfig("Environment", "Environment"),
    CategoryConfig("Education", "Education"),
    CategoryConfig("Law & Crime", "Law & Crime"),
    CategoryConfig("Science", "Science"),
    CategoryConfig("Politics", "Politics"),
]

# Accepted on articles but never given a homepage section.
GENERAL_CATEGORY = "General"


def validate_category_config(payload: Any) -> List[str]:
    """Validate a raw category list. Returns a list of error strings (empty if valid)."""
    validator = Draft202012Validator(CATEGORY_CONFIG_SCHEMA)
    errors = []
    for err in sorted(validator.iter_errors(payload), key=lambda e: list(e.path)):
        path = "/".join(str(p) for p in err.path) or "<root>"
        errors.append(f"{path}: {err.message}")
    if errors:
        return errors

    seen = set()
    for idx, entry in enumerate(payload):
        name = entry["name"]
        if name in seen:
            errors.append(f"{idx}/name: duplicate category {name!r}")
        seen.add(name)
    return errors


def parse_categories(payload: Any) -> List[CategoryConfig]:
    errors = validate_category_config(payload)
    if errors:
        raise CategoryConfigError("Invalid category configuration:\n" + "\n".join(errors))
    return [CategoryConfig.from_dict(entry) for entry in payload]


def load_categories(path: Optional[str] = None) -> List[CategoryConfig]:
    """Load the category list from a JSON file, or fall back to the defaults."""
    path = path or os.environ.get("CATEGORY_CONFIG_PATH")
    if not path:
        return list(DEFAULT_CATEGORIES)
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CategoryConfigError(f"Cannot read category configuration {path}: {e}") from e
    categories = parse_categories(payload)
    logger.info(f"Loaded {len(categories)} categories from {path}")
    return categories


def category_names(categories: Iterable[CategoryConfig]) -> List[str]:
    return [c.name for c in categories]


def find_category(categories: Sequence[CategoryConfig], name: Optional[str]) -> Optional[CategoryConfig]:
    """Look up a configured category by name, ignoring case."""
    if not name:
        return None
    wanted = name.strip().lower()
    for c in categories:
        if c.name.lower() == wanted:
            return c
    return None


def allowed_article_categories(categories: Optional[Iterable[CategoryConfig]] = None) -> Set[str]:
    """Category values a stored article may carry: configured names plus General."""
    configured = DEFAULT_CATEGORIES if categories is None else categories
    return set(category_names(configured)) | {GENERAL_CATEGORY}
