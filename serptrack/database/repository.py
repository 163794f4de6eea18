"""
Repository Layer - Clean Interface for Data Operations

Provides simple functions to store and retrieve tracker data.
Every function takes an open Session; callers own the transaction
(usually via get_db_context()).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from serptrack.errors import (
    BrandNotFoundError,
    DomainConflictError,
    InvalidDomainError,
)
from serptrack.matching.models import CatalogDomain
from serptrack.utils.domain import build_domain_keys

from .models import (
    ActivityAction,
    ActivityLog,
    ApiKey,
    Brand,
    Domain,
    KeyRotationState,
    KeyUsageEvent,
    RunTrigger,
    SerpRun,
)

logger = logging.getLogger(__name__)


# =============================================================================
# BRANDS
# =============================================================================

def create_brand(
    db: Session,
    code: str,
    name: str,
    color: str = "#2563eb",
    description: str = "",
) -> Brand:
    """Create a brand."""
    brand = Brand(code=code.strip(), name=name.strip(), color=color, description=description)
    db.add(brand)
    db.flush()
    return brand


def find_active_brands(db: Session) -> List[Brand]:
    """All active brands ordered by code."""
    return db.query(Brand).filter(Brand.is_active.is_(True)).order_by(Brand.code).all()


def get_active_brand(db: Session, brand_id: str) -> Brand:
    """
    Resolve an active brand.

    Raises:
        BrandNotFoundError: If the id is unknown or the brand is inactive
    """
    brand = db.get(Brand, str(brand_id)) if brand_id else None
    if brand is None or not brand.is_active:
        raise BrandNotFoundError(f"Active brand not found: {brand_id}")
    return brand


# =============================================================================
# DOMAINS
# =============================================================================

def to_catalog_domain(domain: Domain) -> CatalogDomain:
    """Snapshot an ORM domain (with its brand) for the classifier."""
    brand = domain.brand
    return CatalogDomain.from_raw(
        id=domain.id,
        domain=domain.domain,
        brand_id=domain.brand_id,
        brand_code=brand.code if brand else "",
        brand_name=brand.name if brand else "",
        brand_color=brand.color if brand else "",
        is_active=domain.is_active,
    )


def find_active_domains(db: Session) -> List[CatalogDomain]:
    """
    Active domains of active brands, ready for build_index().

    Each entry carries its owning brand's id/code/name/color.
    """
    rows = (
        db.query(Domain)
        .options(joinedload(Domain.brand))
        .join(Brand, Domain.brand_id == Brand.id)
        .filter(Domain.is_active.is_(True), Brand.is_active.is_(True))
        .all()
    )
    return [to_catalog_domain(row) for row in rows]


def add_domain(
    db: Session,
    brand_id: str,
    domain: str,
    note: str = "",
    actor: Optional[str] = None,
) -> Domain:
    """
    Register a domain for a brand.

    A soft-deleted row with the same host and path under the same brand is
    reactivated instead of inserting a new one.

    Raises:
        BrandNotFoundError: Unknown or inactive brand
        InvalidDomainError: Domain does not normalize to a host
        DomainConflictError: Host/path already active for any brand
    """
    brand = get_active_brand(db, brand_id)
    keys = build_domain_keys(domain, brand.code)
    if not keys.host_key:
        raise InvalidDomainError(f"Invalid domain: {domain!r}")

    owner = (
        db.query(Domain)
        .filter(
            Domain.host_key == keys.host_key,
            Domain.path_prefix == keys.path_prefix,
            Domain.is_active.is_(True),
        )
        .first()
    )
    if owner is not None:
        raise DomainConflictError(
            f"{keys.host_key}{keys.path_prefix} is already registered to brand {owner.brand_id}"
        )

    row = (
        db.query(Domain)
        .filter(
            Domain.brand_id == brand.id,
            Domain.host_key == keys.host_key,
            Domain.path_prefix == keys.path_prefix,
        )
        .first()
    )
    if row is None:
        row = Domain(brand=brand, domain=domain, note=note, created_by=actor)
        db.add(row)
    else:
        row.domain = domain
        row.note = note or row.note
        row.is_active = True
        row.updated_by = actor
    db.flush()

    record_activity(
        db,
        ActivityAction.ADD,
        domain=row.domain,
        domain_host_key=row.host_key,
        brand_id=brand.id,
        note=note,
        actor=actor,
    )
    logger.info(f"Registered domain {row.host_key}{row.path_prefix} for brand {brand.code}")
    return row


def deactivate_domain(db: Session, domain_id: str, actor: Optional[str] = None) -> Optional[Domain]:
    """Soft-delete a domain. Returns None if it does not exist."""
    row = db.get(Domain, str(domain_id))
    if row is None:
        return None

    if row.is_active:
        row.is_active = False
        row.updated_by = actor
        db.flush()
        record_activity(
            db,
            ActivityAction.DELETE,
            domain=row.domain,
            domain_host_key=row.host_key,
            brand_id=row.brand_id,
            actor=actor,
        )
        logger.info(f"Deactivated domain {row.host_key}{row.path_prefix}")
    return row


# =============================================================================
# API KEYS
# =============================================================================

def list_api_keys(db: Session, active_only: bool = False) -> List[ApiKey]:
    """API keys in rotation order."""
    query = db.query(ApiKey)
    if active_only:
        query = query.filter(ApiKey.is_active.is_(True))
    return query.order_by(ApiKey.position, ApiKey.created_at).all()


def add_api_key(db: Session, name: str, secret_value: str, is_active: bool = True) -> ApiKey:
    """Append a key at the end of the rotation order."""
    last_position = db.query(func.max(ApiKey.position)).scalar()
    key = ApiKey(
        name=name.strip(),
        secret_value=secret_value.strip(),
        is_active=is_active,
        position=(last_position + 1) if last_position is not None else 0,
    )
    db.add(key)
    db.flush()
    return key


def set_api_key_active(db: Session, key_id: str, is_active: bool) -> Optional[ApiKey]:
    """Operator activation toggle; keys are never deleted automatically."""
    key = db.get(ApiKey, str(key_id))
    if key is not None:
        key.is_active = is_active
        db.flush()
    return key


def get_rotation_state(db: Session) -> KeyRotationState:
    """Load the rotation cursor row, creating it on first use."""
    state = db.get(KeyRotationState, 1)
    if state is None:
        state = KeyRotationState(id=1, cursor=0)
        db.add(state)
        db.flush()
    return state


def record_key_usage(
    db: Session,
    key_id: str,
    used_at: datetime,
    success: bool,
    status_code: Optional[int] = None,
) -> None:
    db.add(KeyUsageEvent(key_id=key_id, used_at=used_at, success=success, status_code=status_code))


def count_key_usage(db: Session, key_id: str, since: Optional[datetime] = None) -> int:
    """Request attempts made with a key, optionally since a point in time."""
    query = db.query(func.count(KeyUsageEvent.id)).filter(KeyUsageEvent.key_id == key_id)
    if since is not None:
        query = query.filter(KeyUsageEvent.used_at >= since)
    return query.scalar() or 0


# =============================================================================
# RUNS
# =============================================================================

def save_run(db: Session, run: Dict[str, Any]) -> SerpRun:
    """
    Persist a run result.

    Args:
        run: Output of RunResult.to_record()
    """
    row = SerpRun(
        brand_id=run["brand_id"],
        query=run["query"],
        trigger=RunTrigger(run.get("trigger", RunTrigger.AUTO.value)),
        checked_at=run["checked_at"],
        params=run.get("params", {}),
        key_id=run.get("key_id"),
        key_name=run.get("key_name", ""),
        key_remaining=run.get("key_remaining"),
        own_count=run.get("own_count", 0),
        competitor_count=run.get("competitor_count", 0),
        unknown_count=run.get("unknown_count", 0),
        best_own_rank=run.get("best_own_rank"),
        results=run.get("results", []),
    )
    db.add(row)
    db.flush()
    return row


def list_runs_for_brand(
    db: Session,
    brand_id: str,
    since: Optional[datetime] = None,
    limit: int = 100,
) -> List[SerpRun]:
    """Most recent runs for a brand."""
    query = db.query(SerpRun).filter(SerpRun.brand_id == str(brand_id))
    if since is not None:
        query = query.filter(SerpRun.checked_at >= since)
    return query.order_by(SerpRun.checked_at.desc()).limit(limit).all()


# =============================================================================
# ACTIVITY LOG
# =============================================================================

def record_activity(
    db: Session,
    action: ActivityAction,
    domain: str = "",
    domain_host_key: str = "",
    brand_id: Optional[str] = None,
    note: str = "",
    actor: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ActivityLog:
    """Append an activity log entry."""
    entry = ActivityLog(
        action=action,
        domain=domain,
        domain_host_key=domain_host_key,
        brand_id=brand_id,
        note=note,
        actor=actor,
        meta=metadata or {},
    )
    db.add(entry)
    return entry


def list_activity(db: Session, limit: int = 100) -> List[ActivityLog]:
    """Latest activity entries, newest first."""
    limit = max(1, min(200, limit))
    return db.query(ActivityLog).order_by(ActivityLog.created_at.desc()).limit(limit).all()
