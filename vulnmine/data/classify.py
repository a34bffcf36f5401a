from __future__ import annotations

from vulnmine.data.categories import RULE_TABLE
from vulnmine.data.schema import Category


def matching_keywords(message: str, category: Category) -> list[str]:
    folded = message.casefold()
    return [keyword for keyword in RULE_TABLE[category].keywords if keyword in folded]


def classify_message(message: str) -> Category | None:
    """Return the first category, in declaration order, whose keywords occur in the message."""
    folded = message.casefold()
    for category in Category:
        if any(keyword in folded for keyword in RULE_TABLE[category].keywords):
            return category
    return None
