"""Utility modules for the SERP brand tracker."""

from .config import Settings, get_settings
from .domain import (
    normalize_host,
    root_domain,
    path_prefix,
    tokenize,
    build_domain_keys,
    extract_host_from_link,
    DomainKeys,
    MIN_TOKEN_LENGTH,
)

__all__ = [
    "Settings",
    "get_settings",
    # Host/domain normalization
    "normalize_host",
    "root_domain",
    "path_prefix",
    "tokenize",
    "build_domain_keys",
    "extract_host_from_link",
    "DomainKeys",
    "MIN_TOKEN_LENGTH",
]
