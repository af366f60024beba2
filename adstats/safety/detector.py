"""
Blocking Detector Module

Classifies a failed scrape into a blocking signal for the monitor.
Timeouts and plain connection errors are not treated as blocking.
"""

from dataclasses import dataclass
from typing import Optional

from adstats.extraction.extractor import ExtractionError
from adstats.fetchers.http_fetcher import FetchError
from adstats.monitor.events import BlockingKind


# Default Retry-After when a 429 carries none
DEFAULT_RETRY_AFTER = 60.0

# Markers of a challenge or login wall in a URL or page body
CAPTCHA_URL_MARKERS = ["checkpoint", "captcha"]
CHALLENGE_BODY_MARKERS = [
    "/checkpoint/",
    "captcha",
    'id="login_form"',
    "/login/?next=",
]

# Phrases of pages rejecting the browser itself
USER_AGENT_BODY_MARKERS = [
    "unsupported browser",
    "browser not supported",
    "update your browser",
    "user agent",
]


@dataclass(frozen=True)
class BlockingSignal:
    """A failure identified as a blocking signal."""

    kind: BlockingKind
    retry_after: Optional[float] = None
    message: str = ""


def _has_marker(text: str, markers: list[str]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def classify_fetch_error(error: FetchError) -> Optional[BlockingSignal]:
    """Classify a fetch failure by status, redirect target and body."""
    if error.timed_out or error.status_code == 0:
        return None

    if error.status_code == 429:
        return BlockingSignal(
            BlockingKind.RATE_LIMIT,
            retry_after=error.retry_after or DEFAULT_RETRY_AFTER,
            message=str(error),
        )

    if error.status_code in (403, 451):
        return BlockingSignal(BlockingKind.IP_BLOCKED, message=str(error))

    if _has_marker(error.final_url, CAPTCHA_URL_MARKERS):
        return BlockingSignal(BlockingKind.CAPTCHA, message=str(error))

    if error.status_code in (400, 406) and _has_marker(error.body, USER_AGENT_BODY_MARKERS):
        return BlockingSignal(BlockingKind.USER_AGENT_BLOCKED, message=str(error))

    if error.status_code >= 400:
        return BlockingSignal(BlockingKind.UNKNOWN, message=str(error))

    return None


def classify_failure(error: Exception) -> Optional[BlockingSignal]:
    """
    Decide whether a scrape failure is a blocking signal.

    Args:
        error: FetchError or ExtractionError raised by the scrape path

    Returns:
        BlockingSignal, or None if the failure is not blocking-related
    """
    if isinstance(error, FetchError):
        return classify_fetch_error(error)

    if isinstance(error, ExtractionError):
        if _has_marker(error.html, CHALLENGE_BODY_MARKERS):
            return BlockingSignal(BlockingKind.CAPTCHA, message=str(error))
        return None

    return None
