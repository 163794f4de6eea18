"""
Provider API Keys

Rotation across multiple search provider keys, quota parsing/estimation,
and environment bootstrap.
"""

from .quota import (
    RATE_LIMIT_STATUSES,
    QuotaTier,
    QuotaEstimate,
    parse_numeric_like,
    extract_remaining,
    estimate_remaining,
)
from .rotation import (
    KeyCredential,
    RotationResult,
    KeyRotationService,
    order_candidates,
    advance_cursor,
)
from .bootstrap import (
    KeyQuotaSummary,
    parse_env_keys,
    ensure_keys_from_env,
    apply_baseline,
    mask_secret,
    build_key_summaries,
)

__all__ = [
    # Quota
    "RATE_LIMIT_STATUSES",
    "QuotaTier",
    "QuotaEstimate",
    "parse_numeric_like",
    "extract_remaining",
    "estimate_remaining",
    # Rotation
    "KeyCredential",
    "RotationResult",
    "KeyRotationService",
    "order_candidates",
    "advance_cursor",
    # Bootstrap
    "KeyQuotaSummary",
    "parse_env_keys",
    "ensure_keys_from_env",
    "apply_baseline",
    "mask_secret",
    "build_key_summaries",
]
