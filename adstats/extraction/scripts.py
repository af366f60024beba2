"""
Script Inspector Module

Finds the inline <script> payloads of an Ad Library page that are likely to
carry ad counts and tags each one with the kind of data it holds. Used to
diagnose pages where the count cascade found nothing.
"""

from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup


class ScriptType(Enum):
    """Kind of data an inline script carries."""
    RELAY_ADS = "facebook_relay_ads"
    RELAY_PRELOADER = "facebook_relay_preloader"
    INITIAL_DATA = "initial_data"
    APOLLO_GRAPHQL = "apollo_graphql"
    REACT_PROPS = "react_props"
    ADS_DATA = "ads_data"
    PAGE_INFO = "page_info"
    RESULT_DATA = "result_data"
    UNKNOWN = "unknown"


@dataclass
class ScriptBlock:
    """A single inline script selected for inspection."""

    content: str
    script_type: ScriptType
    from_relay_tag: bool = False

    @property
    def size(self) -> int:
        return len(self.content)


# Keywords for data-sjs tagged Relay scripts
RELAY_KEYWORDS = [
    "RelayPrefetchedStreamCache",
    "AdLibraryFoundationRootQueryRelayPreloader",
    "search_results_connection",
    "ad_library_main",
    "count",
    "edges",
    "collated_results",
]

# Looser keywords for ordinary scripts
GENERIC_KEYWORDS = [
    "ads",
    "library",
    "active",
    "count",
    "result",
    "data",
    "page",
    "total",
    "Apollo",
    "__INITIAL",
    "GraphQL",
    "state",
]


def classify_script(content: str) -> ScriptType:
    """Guess what kind of payload a script holds."""
    if "RelayPrefetchedStreamCache" in content and "search_results_connection" in content:
        return ScriptType.RELAY_ADS
    if "AdLibraryFoundationRootQueryRelayPreloader" in content:
        return ScriptType.RELAY_PRELOADER
    if "__INITIAL_DATA__" in content or "initialData" in content:
        return ScriptType.INITIAL_DATA
    if "Apollo" in content or "GraphQL" in content:
        return ScriptType.APOLLO_GRAPHQL
    if "React" in content or "props" in content:
        return ScriptType.REACT_PROPS
    if "ads" in content and "count" in content:
        return ScriptType.ADS_DATA
    if "page" in content and "info" in content:
        return ScriptType.PAGE_INFO
    if "total" in content and "result" in content:
        return ScriptType.RESULT_DATA
    return ScriptType.UNKNOWN


class ScriptInspector:
    """
    Selects count-bearing inline scripts from page markup.

    Relay scripts (tagged with data-sjs) are collected first under a strict
    keyword filter, then ordinary scripts under a looser one. Blocks whose
    first 500 characters repeat an earlier block are skipped.

    Example:
        inspector = ScriptInspector()
        for block in inspector.extract(html):
            print(block.script_type, block.size)
    """

    DEDUP_PREFIX = 500

    def __init__(self, min_relay_length: int = 100, min_generic_length: int = 50):
        """
        Initialize the inspector.

        Args:
            min_relay_length: Minimum length of a data-sjs script to keep
            min_generic_length: Minimum length of an ordinary script to keep
        """
        self._min_relay_length = min_relay_length
        self._min_generic_length = min_generic_length

    def extract(self, html: str) -> list[ScriptBlock]:
        """Return selected script blocks in document order, relay scripts first."""
        soup = BeautifulSoup(html, "lxml")
        scripts = soup.find_all("script")

        blocks: list[ScriptBlock] = []
        seen: set[str] = set()

        for tag in scripts:
            if not tag.has_attr("data-sjs"):
                continue
            content = tag.get_text().strip()
            if len(content) <= self._min_relay_length:
                continue
            if not any(keyword in content for keyword in RELAY_KEYWORDS):
                continue
            seen.add(content[:self.DEDUP_PREFIX])
            blocks.append(ScriptBlock(content, classify_script(content), from_relay_tag=True))

        for tag in scripts:
            content = tag.get_text().strip()
            if len(content) <= self._min_generic_length:
                continue
            if not any(keyword in content for keyword in GENERIC_KEYWORDS):
                continue
            prefix = content[:self.DEDUP_PREFIX]
            if prefix in seen:
                continue
            seen.add(prefix)
            blocks.append(ScriptBlock(content, classify_script(content)))

        return blocks

    def summarize(self, html: str) -> dict[str, int]:
        """Count selected scripts per type."""
        summary: dict[str, int] = {}
        for block in self.extract(html):
            key = block.script_type.value
            summary[key] = summary.get(key, 0) + 1
        return summary
