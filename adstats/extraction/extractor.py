"""
Count Extractor Module

Pulls the active ad count and the advertiser name out of raw Ad Library markup.
The page embeds its data in Relay/GraphQL script payloads whose format shifts
without notice, so each field is read through an ordered cascade of patterns
from most specific to least specific; the first match wins.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


UNKNOWN_NAME = "Unknown"


class ExtractionError(Exception):
    """Raised when a fetched page carries no readable count."""

    def __init__(self, message: str, html: str = ""):
        super().__init__(message)
        self.html = html


@dataclass(frozen=True)
class ExtractedStats:
    """Stats extracted for one advertiser page."""

    subject_id: str
    active_count: int
    display_name: str = UNKNOWN_NAME
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "subject_id": self.subject_id,
            "display_name": self.display_name,
            "active_count": self.active_count,
            "observed_at": self.observed_at.isoformat(),
        }


# Count patterns, most specific first
COUNT_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "escaped_search_results",
        re.compile(r'\\?"search_results_connection\\?":\s*\{[^}]*\\?"count\\?":\s*(\d+)', re.I),
    ),
    (
        "escaped_ad_library_main",
        re.compile(
            r'\\?"ad_library_main\\?":\s*\{[^}]*\\?"search_results_connection\\?":\s*\{[^}]*\\?"count\\?":\s*(\d+)',
            re.I,
        ),
    ),
    (
        "relay_preloader",
        re.compile(
            r"AdLibraryFoundationRootQueryRelayPreloader[\s\S]*?search_results_connection[\s\S]*?count[^:]*:\s*(\d+)",
            re.I,
        ),
    ),
    (
        "ad_library_main",
        re.compile(r'"ad_library_main":\s*\{[^}]*"search_results_connection":\s*\{[^}]*"count":\s*(\d+)', re.I),
    ),
    (
        "search_results",
        re.compile(r'"search_results_connection":\s*\{[^}]*"count":\s*(\d+)', re.I),
    ),
    (
        "keyword_fallback",
        re.compile(r'(?:ads?|library|active)[^}]*"count":\s*(\d+)|"count":\s*(\d+)[^}]*(?:ads?|library|active)', re.I),
    ),
]

# Name patterns, most specific first
NAME_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("escaped_page_name", re.compile(r'\\?"page_name\\?":\s*\\?"([^"\\]+)\\?"', re.I)),
    ("page_name", re.compile(r'"page_name":\s*"([^"]+)"', re.I)),
    ("name_near_id", re.compile(r'"name":\s*"([^"]+)"[^}]*"id":\s*"\d+"', re.I)),
]


def _unescape(value: str) -> str:
    """Undo backslash escaping of quotes and backslashes."""
    return value.replace('\\"', '"').replace("\\\\", "\\")


def _first_group(match: re.Match) -> Optional[str]:
    for group in match.groups():
        if group is not None:
            return group
    return None


def extract_active_count(html: str) -> Optional[int]:
    """
    Extract the active ad count from page markup.

    Args:
        html: Raw page markup

    Returns:
        The first count found by the cascade, or None if no pattern matched
    """
    try:
        for name, pattern in COUNT_PATTERNS:
            match = pattern.search(html)
            if not match:
                continue
            value = _first_group(match)
            if value is None:
                continue
            count = int(value)
            logger.debug(f"Count {count} found via {name} pattern")
            return count
    except (TypeError, ValueError) as e:
        logger.error(f"Count extraction failed: {e}")
        return None

    logger.debug("No count pattern matched")
    return None


def extract_display_name(html: str) -> Optional[str]:
    """
    Extract the advertiser display name from page markup.

    Args:
        html: Raw page markup

    Returns:
        The unescaped name, or None if no pattern matched
    """
    try:
        for name, pattern in NAME_PATTERNS:
            match = pattern.search(html)
            if match:
                display_name = _unescape(match.group(1))
                logger.debug(f"Advertiser name found via {name} pattern: {display_name}")
                return display_name
    except TypeError as e:
        logger.error(f"Name extraction failed: {e}")
    return None


def extract_stats(
    html: str,
    subject_id: str,
    observed_at: datetime | None = None,
) -> Optional[ExtractedStats]:
    """
    Build ExtractedStats for a page.

    A missing count means the page was unreadable on this fetch, so the whole
    extraction fails rather than reporting zero ads.
    """
    count = extract_active_count(html)
    if count is None:
        return None

    return ExtractedStats(
        subject_id=subject_id,
        active_count=count,
        display_name=extract_display_name(html) or UNKNOWN_NAME,
        observed_at=observed_at or datetime.now(timezone.utc),
    )
