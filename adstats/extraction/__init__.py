"""Extraction module - count/name pattern cascade and script inspection."""

from .extractor import (
    ExtractedStats,
    ExtractionError,
    extract_active_count,
    extract_display_name,
    extract_stats,
)
from .scripts import ScriptInspector, ScriptType

__all__ = [
    "ExtractedStats",
    "ExtractionError",
    "extract_active_count",
    "extract_display_name",
    "extract_stats",
    "ScriptInspector",
    "ScriptType",
]
