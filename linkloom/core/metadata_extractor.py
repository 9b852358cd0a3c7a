"""
Page metadata extraction.

Pulls title, description, image, keywords, first heading and JSON-LD
structured data out of an HTML document using BeautifulSoup. Each field
has a fixed precedence (OpenGraph, then Twitter card, then plain HTML).
All returned strings are trimmed; blank values count as absent.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageMetadata:
    """Metadata fields parsed from one document."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    keywords: Optional[Tuple[str, ...]] = None
    h1: Optional[str] = None
    structured_data: Optional[Any] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    tag = soup.find("meta", attrs={attr: value})
    if tag is None:
        return None
    return _clean(tag.get("content"))


def _first(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def _extract_title(soup: BeautifulSoup) -> Optional[str]:
    title_tag = soup.find("title")
    return _first(
        _meta_content(soup, "property", "og:title"),
        _meta_content(soup, "name", "twitter:title"),
        _clean(title_tag.get_text()) if title_tag else None,
    )


def _extract_description(soup: BeautifulSoup) -> Optional[str]:
    return _first(
        _meta_content(soup, "property", "og:description"),
        _meta_content(soup, "name", "twitter:description"),
        _meta_content(soup, "name", "description"),
    )


def _extract_image(soup: BeautifulSoup) -> Optional[str]:
    return _first(
        _meta_content(soup, "property", "og:image"),
        _meta_content(soup, "name", "twitter:image"),
    )


def _extract_keywords(soup: BeautifulSoup) -> Optional[Tuple[str, ...]]:
    raw = _meta_content(soup, "name", "keywords")
    if not raw:
        return None

    keywords = []
    for keyword in raw.split(","):
        keyword = keyword.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return tuple(keywords) if keywords else None


def _extract_h1(soup: BeautifulSoup) -> Optional[str]:
    heading = soup.find("h1")
    return _clean(heading.get_text()) if heading else None


def _extract_structured_data(soup: BeautifulSoup) -> Optional[Any]:
    script = soup.find("script", attrs={"type": "application/ld+json"})
    if script is None:
        return None

    raw = script.string if script.string is not None else script.get_text()
    if not raw or not raw.strip():
        return None

    try:
        return json.loads(raw)
    except ValueError as e:
        # Malformed JSON-LD only means the optional field is absent
        logger.debug(f"Ignoring malformed JSON-LD block: {e}")
        return None


def extract_metadata(html: str) -> PageMetadata:
    """
    Parse an HTML document into PageMetadata.

    Args:
        html: Document body

    Returns:
        PageMetadata with every field that could be found
    """
    soup = BeautifulSoup(html, "html.parser")

    return PageMetadata(
        title=_extract_title(soup),
        description=_extract_description(soup),
        image=_extract_image(soup),
        keywords=_extract_keywords(soup),
        h1=_extract_h1(soup),
        structured_data=_extract_structured_data(soup),
    )


__all__ = ["PageMetadata", "extract_metadata"]
