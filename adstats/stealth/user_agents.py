"""
User-Agent Rotator Module

Builds browser-like header sets for Ad Library requests. Each profile pairs a
real desktop User-Agent with the Client Hints that browser would send.
"""

import random
from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class BrowserProfile:
    """A desktop browser fingerprint."""

    user_agent: str
    sec_ch_ua: str = ""
    sec_ch_ua_platform: str = ""


BROWSER_PROFILES = [
    BrowserProfile(
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        sec_ch_ua='"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
        sec_ch_ua_platform='"Windows"',
    ),
    BrowserProfile(
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        sec_ch_ua='"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
        sec_ch_ua_platform='"macOS"',
    ),
    BrowserProfile(
        user_agent="Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        sec_ch_ua='"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
        sec_ch_ua_platform='"Linux"',
    ),
    BrowserProfile(
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
        sec_ch_ua='"Not_A Brand";v="8", "Chromium";v="120", "Microsoft Edge";v="120"',
        sec_ch_ua_platform='"Windows"',
    ),
    # Firefox and Safari send no Client Hints
    BrowserProfile(user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"),
    BrowserProfile(user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0"),
    BrowserProfile(user_agent="Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"),
    BrowserProfile(
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    ),
]

ACCEPT_LANGUAGES = [
    "en-US,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en-GB,en;q=0.9,en-US;q=0.8",
    "es-ES,es;q=0.9,en;q=0.8",
]


class UserAgentRotator:
    """
    Picks a browser profile per request and renders its headers.

    Example:
        rotator = UserAgentRotator()
        headers = rotator.get_headers()
    """

    def __init__(self, profiles: list[BrowserProfile] | None = None):
        """
        Initialize the rotator.

        Args:
            profiles: Custom browser profiles (uses defaults if None)
        """
        self._profiles = list(profiles) if profiles is not None else BROWSER_PROFILES.copy()

    def get_random_profile(self) -> BrowserProfile:
        """Get a random browser profile."""
        return random.choice(self._profiles)

    def get_headers(self) -> Dict[str, str]:
        """
        Get a complete browser-like header set for a page request.

        Returns:
            Dict of HTTP headers
        """
        profile = self.get_random_profile()

        headers = {
            "User-Agent": profile.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": random.choice(ACCEPT_LANGUAGES),
            # httpx negotiates Accept-Encoding and decompresses on its own
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Cache-Control": "max-age=0",
        }

        if profile.sec_ch_ua:
            headers["Sec-Ch-Ua"] = profile.sec_ch_ua
            headers["Sec-Ch-Ua-Mobile"] = "?0"
            headers["Sec-Ch-Ua-Platform"] = profile.sec_ch_ua_platform

        return headers

    @property
    def profile_count(self) -> int:
        """Number of available profiles."""
        return len(self._profiles)
