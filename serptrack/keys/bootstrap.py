"""
API Key Bootstrap & Quota View

Seeds provider keys from the environment, applies operator quota baselines,
and builds the masked per-key quota summary shown to operators.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from serptrack.database import repository
from serptrack.database.models import ApiKey

from .quota import estimate_remaining, month_start

logger = logging.getLogger(__name__)


def parse_env_keys(raw_value: Optional[str]) -> List[Tuple[str, str]]:
    """
    Parse a comma-separated key list into (name, secret) pairs.

    Names are "ENV Key 1", "ENV Key 2", ... in order; blanks are skipped.
    """
    if not raw_value:
        return []
    secrets = [value.strip() for value in raw_value.split(",") if value.strip()]
    return [(f"ENV Key {index}", secret) for index, secret in enumerate(secrets, start=1)]


def ensure_keys_from_env(db: Session, raw_value: Optional[str]) -> List[ApiKey]:
    """Seed keys from the environment only when no keys are stored yet."""
    existing = repository.list_api_keys(db)
    if existing:
        return existing

    created = [repository.add_api_key(db, name, secret) for name, secret in parse_env_keys(raw_value)]
    if created:
        logger.info(f"Seeded {len(created)} API keys from environment")
    return created


def apply_baseline(
    db: Session,
    baseline_remaining: Optional[int],
    key_name: str = "",
    now: Optional[datetime] = None,
) -> Optional[ApiKey]:
    """
    Record operator ground truth for a key's remaining quota.

    Applies to the key named `key_name` (first key if blank or unknown) and
    only if that key has no baseline yet.

    Returns:
        The key the baseline applies to, or None if nothing was applicable
    """
    if baseline_remaining is None or baseline_remaining < 0:
        return None

    keys = repository.list_api_keys(db)
    if not keys:
        return None

    target = next((key for key in keys if key.name == key_name), keys[0])
    if target.baseline_captured_at is not None:
        return target

    target.baseline_remaining = baseline_remaining
    target.baseline_captured_at = now or datetime.utcnow()
    db.flush()
    logger.info(f"Applied quota baseline {baseline_remaining} to key '{target.name}'")
    return target


def mask_secret(secret: Optional[str]) -> str:
    """abc***xyz for secrets longer than 6 chars, otherwise ***."""
    if secret and len(secret) > 6:
        return f"{secret[:3]}***{secret[-3:]}"
    return "***"


@dataclass
class KeyQuotaSummary:
    """Operator view of one key - never includes the secret."""
    id: str
    name: str
    is_active: bool
    masked_key: str
    monthly_limit: int
    requests_this_month: int
    requests_lifetime: int
    remaining_display: Optional[float]
    remaining_tier: str
    remaining_reported: Optional[float]
    baseline_remaining: Optional[int]
    baseline_captured_at: Optional[datetime]
    exhausted_at: Optional[datetime]
    last_used_at: Optional[datetime]
    last_error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_key_summaries(
    db: Session,
    monthly_limit: int,
    now: Optional[datetime] = None,
) -> List[KeyQuotaSummary]:
    """Quota summary for every key in rotation order."""
    now = now or datetime.utcnow()
    since_month = month_start(now)
    summaries = []

    for key in repository.list_api_keys(db):
        requests_month = repository.count_key_usage(db, key.id, since=since_month)
        requests_since_baseline = (
            repository.count_key_usage(db, key.id, since=key.baseline_captured_at)
            if key.baseline_captured_at is not None
            else None
        )
        estimate = estimate_remaining(
            baseline_remaining=key.baseline_remaining,
            requests_since_baseline=requests_since_baseline,
            monthly_limit=monthly_limit,
            requests_this_month=requests_month,
            reported_remaining=key.last_known_remaining,
        )
        summaries.append(KeyQuotaSummary(
            id=key.id,
            name=key.name,
            is_active=key.is_active,
            masked_key=mask_secret(key.secret_value),
            monthly_limit=monthly_limit,
            requests_this_month=requests_month,
            requests_lifetime=repository.count_key_usage(db, key.id),
            remaining_display=estimate.remaining,
            remaining_tier=estimate.tier.value,
            remaining_reported=key.last_known_remaining,
            baseline_remaining=key.baseline_remaining,
            baseline_captured_at=key.baseline_captured_at,
            exhausted_at=key.exhausted_at,
            last_used_at=key.last_used_at,
            last_error=key.last_error or "",
        ))

    return summaries
