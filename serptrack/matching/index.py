"""
Domain Catalog Index

In-memory lookup structures built from the active domain set for a single
classification pass. An index is immutable once built; each check builds a
fresh one so domains added or removed between checks are always seen.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .models import CatalogDomain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogIndex:
    """
    Read-only lookup tables over the active domains.

    Attributes:
        by_host: host key -> domains sharing it (path-scoped variants)
        by_root: root key -> domains under that registrable domain
        by_token: token -> ids of domains carrying it
        by_id: domain id -> domain
        by_specificity: all domains, most specific first
    """
    by_host: Mapping[str, Tuple[CatalogDomain, ...]]
    by_root: Mapping[str, Tuple[CatalogDomain, ...]]
    by_token: Mapping[str, FrozenSet[str]]
    by_id: Mapping[str, CatalogDomain]
    by_specificity: Tuple[CatalogDomain, ...]

    def __len__(self) -> int:
        return len(self.by_id)

    def domains_for_tokens(self, tokens: Iterable[str]) -> List[CatalogDomain]:
        """Domains carrying any of the given tokens, deduplicated."""
        ids: Set[str] = set()
        for token in tokens:
            ids.update(self.by_token.get(token, ()))
        return [self.by_id[domain_id] for domain_id in ids]


def _freeze(groups: Dict[str, List[CatalogDomain]]) -> Mapping[str, Tuple[CatalogDomain, ...]]:
    return MappingProxyType({key: tuple(items) for key, items in groups.items()})


def build_index(domains: Iterable[CatalogDomain]) -> CatalogIndex:
    """
    Build the catalog index in a single pass over the active domains.

    Inactive domains and domains whose raw string did not normalize to a
    host are skipped.

    Args:
        domains: Registered domains (any mix of active/inactive)

    Returns:
        Immutable CatalogIndex
    """
    by_host: Dict[str, List[CatalogDomain]] = {}
    by_root: Dict[str, List[CatalogDomain]] = {}
    by_token: Dict[str, Set[str]] = {}
    by_id: Dict[str, CatalogDomain] = {}
    skipped = 0

    for item in domains:
        if not item.is_active or not item.host_key:
            skipped += 1
            continue
        if item.id in by_id:
            continue

        by_id[item.id] = item
        by_host.setdefault(item.host_key, []).append(item)
        if item.root_key:
            by_root.setdefault(item.root_key, []).append(item)
        for token in item.tokens:
            by_token.setdefault(token, set()).add(item.id)

    by_specificity = tuple(
        sorted(by_id.values(), key=lambda d: d.specificity, reverse=True)
    )

    logger.debug(f"Built catalog index: {len(by_id)} domains, {len(by_token)} tokens, {skipped} skipped")

    return CatalogIndex(
        by_host=_freeze(by_host),
        by_root=_freeze(by_root),
        by_token=MappingProxyType({k: frozenset(v) for k, v in by_token.items()}),
        by_id=MappingProxyType(by_id),
        by_specificity=by_specificity,
    )
