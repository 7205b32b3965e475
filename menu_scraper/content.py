"""Reduce fetched HTML to menu text and candidate menu images."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from menu_scraper.classifier import DEFAULT_HEURISTICS, MenuHeuristics

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

# Attributes that may carry the image URL; lazy loaders keep it in data-*
_IMAGE_SRC_ATTRS = ("src", "data-src", "data-lazy-src")


def _soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


def extract_text(markup: str, heuristics: MenuHeuristics = DEFAULT_HEURISTICS) -> str:
    """Return the page text with likely menu sections placed first.

    Scripts, styles and ``<noscript>`` blocks are dropped.  Every
    candidate selector whose combined text falls inside the configured
    length window is prepended to the full body text, so the menu ends
    up at the top even on pages with long navigation or footers.
    Whitespace is collapsed to single spaces.
    """
    soup = _soup(markup)
    for node in soup(["script", "style", "noscript"]):
        node.decompose()

    sections: list[str] = []
    for selector in heuristics.section_selectors:
        elements = soup.select(selector)
        if not elements:
            continue
        text = "".join(el.get_text(" ") for el in elements)
        if heuristics.min_section_length < len(text) < heuristics.max_section_length:
            sections.append(text)

    body = soup.body if soup.body is not None else soup
    combined = "\n\n".join(sections) + "\n" + body.get_text(" ")
    return _WHITESPACE_RE.sub(" ", combined).strip()


def _image_src(img: Tag) -> str | None:
    for attr in _IMAGE_SRC_ATTRS:
        value = img.get(attr)
        if value:
            return str(value).strip()
    return None


def extract_images(
    markup: str,
    base_url: str,
    heuristics: MenuHeuristics = DEFAULT_HEURISTICS,
) -> tuple[str, ...]:
    """Find ``<img>`` elements that look like a menu, as absolute URLs.

    An image qualifies when its source, ``alt`` or ``title`` contains a
    menu keyword (case-insensitive).  Relative sources are resolved
    against *base_url*; document order is preserved.
    """
    soup = _soup(markup)
    found: list[str] = []
    for img in soup.find_all("img"):
        if not isinstance(img, Tag):
            continue
        src = _image_src(img)
        if not src or src.startswith("data:"):
            continue
        haystack = " ".join(
            (src, str(img.get("alt", "")), str(img.get("title", "")))
        ).lower()
        if not any(kw in haystack for kw in heuristics.image_keywords):
            continue
        try:
            found.append(urljoin(base_url, src))
        except ValueError as exc:
            logger.debug("Skipping malformed image source %r on %s: %s", src, base_url, exc)

    if found:
        logger.debug("Found %d candidate menu image(s) on %s", len(found), base_url)
    return tuple(found)
