"""
adstats - Adaptive advertiser stats scraper.

This package provides:
- Ordered pattern-cascade extraction of active ad counts
- TTL result cache
- Blocking event monitoring with severity analysis
- Severity-driven throttle knobs (delay, batch size, concurrency)
- Admission and batch coordination for stat lookups
"""

__version__ = "1.0.0"
__author__ = "adstats"
