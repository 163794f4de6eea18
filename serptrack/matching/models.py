"""
Matching Models

Value types shared by the catalog index, the classifier and the run
orchestrator. All of them are immutable.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from serptrack.utils.domain import build_domain_keys


class Badge(enum.Enum):
    """Classification of a search result relative to the requested brand."""
    OWN = "OWN"
    COMPETITOR = "COMPETITOR"
    UNKNOWN = "UNKNOWN"


class MatchType(enum.Enum):
    """Which cascade step produced a match."""
    EXACT = "exact"
    SUFFIX = "suffix"
    CONTAINS = "contains"
    TOKEN = "token"
    NONE = "none"


@dataclass(frozen=True)
class CatalogDomain:
    """
    A registered domain as seen by the classifier.

    Derived keys come from build_domain_keys(); use from_raw() rather than
    filling them in by hand.
    """
    id: str
    domain: str
    brand_id: str
    host_key: str
    root_key: str
    path_prefix: str = ""
    tokens: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True

    # Owning brand, carried for badge construction
    brand_code: str = ""
    brand_name: str = ""
    brand_color: str = ""

    @classmethod
    def from_raw(
        cls,
        id: str,
        domain: str,
        brand_id: str,
        brand_code: str = "",
        brand_name: str = "",
        brand_color: str = "",
        is_active: bool = True,
    ) -> "CatalogDomain":
        """Build a catalog entry, deriving its keys from the raw domain."""
        keys = build_domain_keys(domain, brand_code)
        return cls(
            id=str(id),
            domain=domain,
            brand_id=str(brand_id),
            host_key=keys.host_key,
            root_key=keys.root_key,
            path_prefix=keys.path_prefix,
            tokens=keys.tokens,
            is_active=is_active,
            brand_code=brand_code,
            brand_name=brand_name,
            brand_color=brand_color,
        )

    @property
    def specificity(self) -> tuple:
        """Sort key: longer host first, then longer path prefix."""
        return (len(self.host_key), len(self.path_prefix))

    def summary(self) -> Dict[str, Any]:
        """Matched-domain snapshot stored on result rows."""
        return {
            "id": self.id,
            "domain": self.domain,
            "host_key": self.host_key,
            "root_key": self.root_key,
            "path_prefix": self.path_prefix,
        }

    def brand_summary(self) -> Dict[str, Any]:
        """Matched-brand snapshot stored on result rows."""
        return {
            "id": self.brand_id,
            "code": self.brand_code,
            "name": self.brand_name,
            "color": self.brand_color,
        }


@dataclass(frozen=True)
class MatchResult:
    """Outcome of classifying one search result."""
    matched_domain: Optional[CatalogDomain]
    match_type: MatchType

    @property
    def is_match(self) -> bool:
        return self.matched_domain is not None


NO_MATCH = MatchResult(matched_domain=None, match_type=MatchType.NONE)
