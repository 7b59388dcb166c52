"""Matching and ranking engines for the Summon launcher."""

from .config import Config
from .index import SearchIndex
from .models import IndexedItem, IndexStats, ItemType, MatchResult, ScoredResult, TriggerRule
from .scanner import FileScanner
from .triggers import TriggerMatcher

__all__ = [
    "Config",
    "FileScanner",
    "IndexedItem",
    "IndexStats",
    "ItemType",
    "MatchResult",
    "ScoredResult",
    "SearchIndex",
    "TriggerMatcher",
    "TriggerRule",
]
