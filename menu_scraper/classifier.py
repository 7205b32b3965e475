"""Heuristic check for whether fetched content contains a menu.

The keyword lists and length bounds live in :class:`MenuHeuristics` so
they can be tuned or swapped in tests without touching the fetch logic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Sequence

# Words that show up next to priced daily-menu items
_TEXT_KEYWORDS = ("polévka", "soup", "cena", "kč")

# Prices as printed on Czech and Austrian menus: 145 Kč, 145,-, €12, 12,50 €, EUR 9
_PRICE_PATTERNS = (
    r"\d+\s*(?:kč|kc|,-)",
    r"€\s*\d+(?:[.,]\d{1,2})?",
    r"\d+(?:[.,]\d{1,2})?\s*€",
    r"EUR\s*\d+(?:[.,]\d{1,2})?",
)

# id/class substrings that mark a menu container
_SECTION_MARKERS = ("menu", "denni", "denní")

# Structural containers that usually hold the main page content
_SECTION_CONTAINERS = ("section", "article", ".content", "#content")

_IMAGE_KEYWORDS = ("menu", "polední", "poledni", "nabídka", "jídlo", "listek", "denní")


@dataclass(frozen=True)
class MenuHeuristics:
    """Tunable policy for text extraction and menu detection."""

    text_keywords: tuple[str, ...] = _TEXT_KEYWORDS
    price_patterns: tuple[str, ...] = _PRICE_PATTERNS
    section_markers: tuple[str, ...] = _SECTION_MARKERS
    section_containers: tuple[str, ...] = _SECTION_CONTAINERS
    image_keywords: tuple[str, ...] = _IMAGE_KEYWORDS
    # Section text must be longer than min and shorter than max to count
    min_section_length: int = 100
    max_section_length: int = 10_000

    @cached_property
    def price_re(self) -> re.Pattern[str]:
        return re.compile("|".join(self.price_patterns), re.IGNORECASE)

    @property
    def section_selectors(self) -> list[str]:
        """CSS selectors tried in order when ranking candidate sections."""
        selectors: list[str] = []
        for marker in self.section_markers:
            selectors.append(f'[id*="{marker}"]')
            selectors.append(f'[class*="{marker}"]')
        selectors.extend(self.section_containers)
        return selectors


DEFAULT_HEURISTICS = MenuHeuristics()


def looks_like_menu(
    text: str,
    images: Sequence[str],
    heuristics: MenuHeuristics = DEFAULT_HEURISTICS,
) -> bool:
    """Return True if *text* or *images* plausibly contain a menu.

    True when the text mentions any menu keyword, contains a price, or
    at least one candidate menu image was found.
    """
    if images:
        return True
    lower = text.lower()
    if any(kw in lower for kw in heuristics.text_keywords):
        return True
    return heuristics.price_re.search(text) is not None
