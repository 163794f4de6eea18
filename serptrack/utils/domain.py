"""
Host & Domain Normalization

Turns raw domain strings and search-result URLs into the comparison keys used
by the domain catalog:
- host key: lower-cased hostname without leading "www."
- root key: registrable domain (public-suffix aware)
- path prefix: URL path without trailing slashes
- tokens: word-like fragments used for fallback matching

None of these functions raise on bad input. Unparseable values produce
empty keys, which callers treat as unclassifiable.
"""

import re
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Optional
from urllib.parse import SplitResult, urlsplit

import tldextract

logger = logging.getLogger(__name__)


# Tokens shorter than this ("id", "co", "www") match far too much
MIN_TOKEN_LENGTH = 4

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://")
_HOST_PATTERN = re.compile(r"^[a-z0-9_.:-]+$")
_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9.-]")
_TOKEN_SEPARATORS = re.compile(r"[.\-\s_]+")

# Bundled Public Suffix List snapshot; never fetched over the network
_suffix_extractor = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)


@dataclass(frozen=True)
class DomainKeys:
    """Derived comparison keys for one raw domain string."""
    host_key: str
    root_key: str
    path_prefix: str
    tokens: FrozenSet[str] = field(default_factory=frozenset)


def _split_url(value: Optional[str]) -> Optional[SplitResult]:
    """Parse a bare domain or URL, prepending a scheme when missing."""
    if value is None:
        return None

    text = str(value).strip().lower()
    if not text:
        return None

    if "://" not in text:
        text = f"https://{text}"

    try:
        return urlsplit(text)
    except ValueError:
        # Malformed IPv6 literal
        return None


def _clean_hostname(hostname: Optional[str]) -> str:
    """Validate a parsed hostname, converting IDN labels to punycode."""
    if not hostname:
        return ""

    if not hostname.isascii():
        try:
            hostname = hostname.encode("idna").decode("ascii")
        except UnicodeError:
            return ""

    if not _HOST_PATTERN.match(hostname):
        return ""

    return hostname


def normalize_host(value: Optional[str]) -> str:
    """
    Canonical host key for a bare domain or full URL.

    Lower-cases the hostname and strips leading "www." labels. Stripping
    repeats so the result is stable under re-normalization.

    Returns:
        Host key, or "" if the input cannot be parsed
    """
    parts = _split_url(value)
    if parts is None:
        return ""

    host = _clean_hostname(parts.hostname)
    while host.startswith("www."):
        host = host[4:]
    return host


# Result links are just URLs; the host key is all the classifier needs
extract_host_from_link = normalize_host


@lru_cache(maxsize=4096)
def root_domain(host_key: str) -> str:
    """
    Registrable domain for a host key (shop.example.co.id -> example.co.id).

    Falls back to the host key itself when the suffix rules cannot
    classify it (IP addresses, single-label hosts, unknown suffixes).
    """
    if not host_key:
        return ""

    extracted = _suffix_extractor(host_key)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return host_key


def path_prefix(value: Optional[str]) -> str:
    """
    URL path with trailing slashes trimmed.

    The root path "/" and a missing path both yield "".
    """
    parts = _split_url(value)
    if parts is None or not _clean_hostname(parts.hostname):
        return ""
    return parts.path.rstrip("/")


def tokenize(value: Optional[str]) -> FrozenSet[str]:
    """
    Split a value into lower-case tokens of at least MIN_TOKEN_LENGTH chars.

    Anything outside [a-z0-9.-] becomes a separator, then the text is split
    on dots, hyphens, underscores and whitespace.
    """
    if not value:
        return frozenset()

    text = _NON_TOKEN_CHARS.sub(" ", str(value).lower())
    return frozenset(
        token for token in _TOKEN_SEPARATORS.split(text)
        if len(token) >= MIN_TOKEN_LENGTH
    )


def build_domain_keys(domain: str, brand_code: Optional[str] = None) -> DomainKeys:
    """
    Derive all comparison keys for a registered domain.

    Tokens pool the raw domain string (scheme removed), the host key, the
    root key and the owning brand's code, so a brand's own short name also
    acts as a matching signal.

    Args:
        domain: Raw domain string as entered by an operator
        brand_code: Code of the brand that owns the domain

    Returns:
        DomainKeys with empty host_key if the domain cannot be parsed
    """
    host_key = normalize_host(domain)
    root_key = root_domain(host_key)
    raw = _SCHEME_PATTERN.sub("", str(domain or "").strip().lower())

    tokens = (
        tokenize(raw)
        | tokenize(host_key)
        | tokenize(root_key)
        | tokenize(brand_code)
    )

    return DomainKeys(
        host_key=host_key,
        root_key=root_key,
        path_prefix=path_prefix(domain),
        tokens=tokens,
    )
