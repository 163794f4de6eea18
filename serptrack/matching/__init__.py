"""
Domain Matching

Catalog index and classification cascade for search results.

Usage:
    index = build_index(active_domains)
    match = classify(host, link, index)
    badge = derive_badge(match.matched_domain, brand_id)
"""

from .models import Badge, MatchType, CatalogDomain, MatchResult, NO_MATCH
from .index import CatalogIndex, build_index
from .classifier import (
    classify,
    derive_badge,
    most_specific,
    path_matches,
    select_by_path,
)

__all__ = [
    "Badge",
    "MatchType",
    "CatalogDomain",
    "MatchResult",
    "NO_MATCH",
    "CatalogIndex",
    "build_index",
    "classify",
    "derive_badge",
    "most_specific",
    "path_matches",
    "select_by_path",
]
