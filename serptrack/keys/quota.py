"""
Quota Tracking

Providers report remaining quota inconsistently, so remaining requests are
read from whichever known header or body field is present and, for display,
estimated from three sources in order of trust:

1. baseline  - operator-supplied remaining count minus requests since then
2. monthly   - configured monthly limit minus requests this month
3. reported  - last value the provider reported
"""

import enum
import math
import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


# Failure statuses treated as rate-limit/quota signals rather than hard failures
RATE_LIMIT_STATUSES = frozenset({401, 402, 403, 429})

# Checked in order; monthly scopes first when a provider exposes several
REMAINING_HEADER_FIELDS: Tuple[str, ...] = (
    "x-ratelimit-remaining-month",
    "x-ratelimit-remaining",
    "x-ratelimit-requests-remaining",
    "x-ratelimit-remaining-searches",
    "x-ratelimit-remaining-day",
    "x-api-quota-remaining",
    "x-credits-remaining",
)

REMAINING_BODY_FIELDS: Tuple[str, ...] = (
    "remaining",
    "remainingCredits",
    "creditsRemaining",
    "searchCreditsRemaining",
    "credits",
)

_NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?")


def parse_numeric_like(value: Any) -> Optional[float]:
    """
    First number found in a value ("1,234 left" -> 1.0, "987" -> 987).

    Returns:
        int or float, or None when no finite number is present
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None

    match = _NUMBER_PATTERN.search(str(value))
    if not match:
        return None

    number = float(match.group(0))
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


# =============================================================================
# REMAINING-QUOTA EXTRACTORS
# =============================================================================

QuotaExtractor = Callable[[Mapping[str, Any], Any], Optional[float]]


def _header_extractor(name: str) -> QuotaExtractor:
    def extract(headers: Mapping[str, Any], body: Any) -> Optional[float]:
        for key, value in headers.items():
            if key.lower() == name:
                return parse_numeric_like(value)
        return None
    return extract


def _body_extractor(name: str) -> QuotaExtractor:
    def extract(headers: Mapping[str, Any], body: Any) -> Optional[float]:
        if not isinstance(body, Mapping):
            return None
        return parse_numeric_like(body.get(name))
    return extract


REMAINING_EXTRACTORS: Tuple[QuotaExtractor, ...] = tuple(
    [_header_extractor(name) for name in REMAINING_HEADER_FIELDS]
    + [_body_extractor(name) for name in REMAINING_BODY_FIELDS]
)


def extract_remaining(headers: Optional[Mapping[str, Any]], body: Any = None) -> Optional[float]:
    """Remaining quota from response headers, falling back to body fields."""
    headers = headers or {}
    for extractor in REMAINING_EXTRACTORS:
        value = extractor(headers, body)
        if value is not None:
            return value
    return None


# =============================================================================
# ESTIMATION
# =============================================================================

class QuotaTier(enum.Enum):
    """Source of a remaining-quota estimate"""
    BASELINE = "baseline"
    MONTHLY = "monthly"
    REPORTED = "reported"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class QuotaEstimate:
    remaining: Optional[float]
    tier: QuotaTier


def estimate_remaining(
    baseline_remaining: Optional[int] = None,
    requests_since_baseline: Optional[int] = None,
    monthly_limit: Optional[int] = None,
    requests_this_month: Optional[int] = None,
    reported_remaining: Optional[float] = None,
) -> QuotaEstimate:
    """
    Displayed remaining quota for a key.

    Estimates never go below zero.
    """
    if baseline_remaining is not None and requests_since_baseline is not None:
        return QuotaEstimate(max(baseline_remaining - requests_since_baseline, 0), QuotaTier.BASELINE)

    if monthly_limit and requests_this_month is not None:
        return QuotaEstimate(max(monthly_limit - requests_this_month, 0), QuotaTier.MONTHLY)

    if reported_remaining is not None:
        return QuotaEstimate(reported_remaining, QuotaTier.REPORTED)

    return QuotaEstimate(None, QuotaTier.UNKNOWN)


def month_start(now: datetime) -> datetime:
    """First instant of the month containing `now`."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
