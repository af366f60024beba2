"""Fetchers module - HTTP page fetching."""

from .http_fetcher import FetchError, FetchResult, HTTPFetcher, build_ad_library_url

__all__ = ["FetchError", "FetchResult", "HTTPFetcher", "build_ad_library_url"]
