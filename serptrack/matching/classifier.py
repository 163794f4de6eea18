"""
Search Result Classification

Resolves a search result (host + raw link) to the registered domain it
belongs to, using a cascade where the first matching step wins:

1. exact    - result host equals a registered host key
2. suffix   - result host is a subdomain of a registered host, or shares
              its registrable root with one
3. contains - the raw or percent-decoded link embeds a registered domain
              (redirect and tracking URLs)
4. token    - result host/link shares a token of 4+ chars with a domain
5. none     - no match, which is a valid outcome and never an error

Whenever several candidates remain, the most specific registered domain
wins: longer host key first, then longer path prefix.
"""

import re
import logging
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence
from urllib.parse import unquote

from serptrack.utils.domain import normalize_host, path_prefix, root_domain, tokenize

from .index import CatalogIndex
from .models import Badge, CatalogDomain, MatchResult, MatchType, NO_MATCH

logger = logging.getLogger(__name__)

# Percent-decoding passes applied to links (handles double-encoded redirects)
MAX_DECODE_PASSES = 2

# Characters that end a URL embedded in a query string
_EMBEDDED_URL_END = re.compile(r"[?&#\s\"'<>]")


# =============================================================================
# CANDIDATE SELECTION
# =============================================================================

def _specificity_key(domain: CatalogDomain) -> tuple:
    # Lexical fields make ties deterministic regardless of input order
    return (-len(domain.host_key), -len(domain.path_prefix), domain.host_key, domain.path_prefix, domain.id)


def most_specific(candidates: Iterable[CatalogDomain]) -> Optional[CatalogDomain]:
    """Pick the most specific domain (longest host, then longest path)."""
    ordered = sorted(candidates, key=_specificity_key)
    return ordered[0] if ordered else None


def path_matches(prefix: str, result_path: str) -> bool:
    """True if a registered path prefix covers the result path on a "/" boundary."""
    if not prefix:
        return True
    return result_path == prefix or result_path.startswith(prefix + "/")


def select_by_path(candidates: Sequence[CatalogDomain], result_path: str) -> Optional[CatalogDomain]:
    """
    Choose among candidates using the result's URL path.

    Candidates whose path prefix covers the result path are preferred, the
    most specific first. If none covers it, any candidate is accepted.
    """
    matching = [item for item in candidates if path_matches(item.path_prefix, result_path)]
    return most_specific(matching or candidates)


def _dedupe(candidates: Iterable[CatalogDomain]) -> List[CatalogDomain]:
    seen = set()
    unique = []
    for item in candidates:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


# =============================================================================
# CASCADE STEPS
# =============================================================================

def _match_exact(host: str, result_path: str, index: CatalogIndex) -> Optional[CatalogDomain]:
    candidates = index.by_host.get(host)
    if not candidates:
        return None
    return select_by_path(candidates, result_path)


def _match_suffix(host: str, result_path: str, index: CatalogIndex) -> Optional[CatalogDomain]:
    subdomain_hits = [
        item for item in index.by_specificity
        if host == item.host_key or host.endswith("." + item.host_key)
    ]
    if subdomain_hits:
        return select_by_path(subdomain_hits, result_path)

    # Siblings under the same registrable domain (m.example.com vs shop.example.com)
    root_hits = _dedupe(index.by_root.get(root_domain(host), ()))
    if root_hits:
        return select_by_path(root_hits, result_path)
    return None


@lru_cache(maxsize=2048)
def _bounded_pattern(needle: str) -> "re.Pattern":
    """Needle surrounded by non [a-z0-9.-] characters, optional leading www."""
    return re.compile(r"(?<![a-z0-9.-])(?:www\.)?" + re.escape(needle) + r"(?![a-z0-9.-])")


def _needles(domain: CatalogDomain) -> List[str]:
    needles = [domain.host_key + domain.path_prefix]
    if domain.path_prefix:
        needles.append(domain.host_key)
    raw = re.sub(r"^[a-z][a-z0-9+.-]*://", "", domain.domain.strip().lower()).rstrip("/")
    if raw and raw not in needles:
        needles.append(raw)
    return needles


def _link_variants(link: str) -> List[str]:
    variants = [link.lower()]
    current = link
    for _ in range(MAX_DECODE_PASSES):
        decoded = unquote(current)
        if decoded == current:
            break
        variants.append(decoded.lower())
        current = decoded
    return variants


def _embedded_path(domain: CatalogDomain, haystacks: Sequence[str]) -> Optional[str]:
    """Path of the first URL in the haystacks that embeds the domain, or None."""
    # Most decoded first, so the embedded path is readable
    for haystack in reversed(haystacks):
        for needle in _needles(domain):
            found = _bounded_pattern(needle).search(haystack)
            if found:
                embedded = _EMBEDDED_URL_END.split(haystack[found.start():], maxsplit=1)[0]
                return path_prefix(embedded)
    return None


def _match_contains(link: str, index: CatalogIndex) -> Optional[CatalogDomain]:
    if not link:
        return None

    haystacks = _link_variants(link)
    hits = []
    for item in index.by_specificity:
        embedded = _embedded_path(item, haystacks)
        if embedded is not None:
            hits.append((item, embedded))
    if not hits:
        return None

    # Path selection uses the embedded URL's path, not the outer link's
    covered = [item for item, embedded in hits if path_matches(item.path_prefix, embedded)]
    return most_specific(covered or [item for item, _ in hits])


def _match_token(host: str, link: str, result_path: str, index: CatalogIndex) -> Optional[CatalogDomain]:
    tokens = tokenize(host) | tokenize(link)
    candidates = index.domains_for_tokens(tokens)
    if not candidates:
        return None
    return select_by_path(candidates, result_path)


# =============================================================================
# PUBLIC API
# =============================================================================

def classify(
    result_host: str,
    result_link: str,
    index: CatalogIndex,
    allow_contains: bool = True,
) -> MatchResult:
    """
    Resolve a search result to a registered domain.

    Args:
        result_host: Host of the result (normalized again here)
        result_link: Raw result URL, used for path selection and the
                     contains/token steps
        index: Catalog index for this pass
        allow_contains: Enable the substring step for redirect URLs

    Returns:
        MatchResult; matched_domain is None with match_type NONE when
        nothing matches or the host is unusable
    """
    host = normalize_host(result_host)
    if not host:
        return NO_MATCH

    link = result_link or ""
    result_path = path_prefix(link) if link else ""

    matched = _match_exact(host, result_path, index)
    if matched:
        return MatchResult(matched, MatchType.EXACT)

    matched = _match_suffix(host, result_path, index)
    if matched:
        return MatchResult(matched, MatchType.SUFFIX)

    if allow_contains:
        matched = _match_contains(link, index)
        if matched:
            return MatchResult(matched, MatchType.CONTAINS)

    matched = _match_token(host, link, result_path, index)
    if matched:
        return MatchResult(matched, MatchType.TOKEN)

    return NO_MATCH


def derive_badge(matched_domain: Optional[CatalogDomain], requested_brand_id) -> Badge:
    """OWN if the match belongs to the requested brand, COMPETITOR if to another, else UNKNOWN."""
    if matched_domain is None:
        return Badge.UNKNOWN
    if str(matched_domain.brand_id) == str(requested_brand_id):
        return Badge.OWN
    return Badge.COMPETITOR
