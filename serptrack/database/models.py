"""
SQLAlchemy Models for the SERP Brand Tracker

Design Principles:
1. Derived domain keys are recomputed from the raw domain on every change
2. Domains and keys are soft-deactivated, never deleted automatically
3. Per-key usage is persisted so rotation and quota survive restarts
4. Auto-check runs keep their full result rows for ranking history
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, UniqueConstraint, JSON,
)
from sqlalchemy.orm import declarative_base, relationship, validates

from serptrack.utils.domain import build_domain_keys

Base = declarative_base()


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class RunTrigger(enum.Enum):
    """What started a check"""
    MANUAL = "manual"  # Operator request, cached but not persisted
    AUTO = "auto"      # Sweep, always persisted


class ActivityAction(enum.Enum):
    """Activity log entry types"""
    ADD = "add"
    DELETE = "delete"
    AUTO_START = "auto_start"
    AUTO_STOP = "auto_stop"
    AUTO_CHECK = "auto_check"


# =============================================================================
# BRANDS & DOMAINS
# =============================================================================

class Brand(Base):
    """Tracked brand - its code is the default search query"""
    __tablename__ = "brands"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    color = Column(String(16), default="#2563eb")
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    domains = relationship("Domain", back_populates="brand", cascade="all, delete-orphan")
    runs = relationship("SerpRun", back_populates="brand", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_brand_active", "is_active"),
    )

    def __repr__(self):
        return f"<Brand {self.code}>"


class Domain(Base):
    """Registered brand domain, optionally scoped to a path on a shared host"""
    __tablename__ = "domains"

    id = Column(String(36), primary_key=True, default=_new_id)
    brand_id = Column(String(36), ForeignKey("brands.id"), nullable=False)

    # Raw value as entered by the operator
    domain = Column(String(512), nullable=False)
    note = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    # Derived from `domain` - never assigned directly
    host_key = Column(String(255), nullable=False, default="")
    root_key = Column(String(255), nullable=False, default="")
    path_prefix = Column(String(512), nullable=False, default="")
    tokens = Column(JSON, default=list)

    # Audit
    created_by = Column(String(255))
    updated_by = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    brand = relationship("Brand", back_populates="domains")

    __table_args__ = (
        UniqueConstraint("brand_id", "host_key", "path_prefix", name="uq_domain_brand_host_path"),
        Index("idx_domain_host_key", "host_key"),
        Index("idx_domain_root_key", "root_key"),
        Index("idx_domain_active", "is_active"),
    )

    @validates("domain")
    def _derive_keys(self, key, value):
        value = (value or "").strip()
        self._apply_keys(value, self.brand)
        return value

    @validates("brand")
    def _rederive_tokens(self, key, brand):
        # Tokens include the owning brand's code
        if self.domain:
            self._apply_keys(self.domain, brand)
        return brand

    def _apply_keys(self, value, brand):
        keys = build_domain_keys(value, brand.code if brand is not None else None)
        self.host_key = keys.host_key
        self.root_key = keys.root_key
        self.path_prefix = keys.path_prefix
        self.tokens = sorted(keys.tokens)

    def __repr__(self):
        return f"<Domain {self.host_key}{self.path_prefix}>"


# =============================================================================
# PROVIDER API KEYS
# =============================================================================

class ApiKey(Base):
    """Search provider API key with usage and quota state"""
    __tablename__ = "serp_api_keys"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    secret_value = Column(String(512), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # Rotation order

    # Usage state (mutated after every attempt)
    last_used_at = Column(DateTime)
    last_error = Column(Text, default="")
    exhausted_at = Column(DateTime)
    last_known_remaining = Column(Float)
    total_request_count = Column(Integer, default=0, nullable=False)

    # Operator-supplied quota ground truth
    baseline_remaining = Column(Integer)
    baseline_captured_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    usage_events = relationship("KeyUsageEvent", back_populates="api_key", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_api_key_active_position", "is_active", "position"),
    )

    def __repr__(self):
        return f"<ApiKey {self.name}>"


class KeyRotationState(Base):
    """Single row holding the rotation cursor"""
    __tablename__ = "key_rotation_state"

    id = Column(Integer, primary_key=True, default=1)
    cursor = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class KeyUsageEvent(Base):
    """One row per request attempt - source of quota estimates"""
    __tablename__ = "key_usage_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key_id = Column(String(36), ForeignKey("serp_api_keys.id"), nullable=False)
    used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    success = Column(Boolean, nullable=False)
    status_code = Column(Integer)

    api_key = relationship("ApiKey", back_populates="usage_events")

    __table_args__ = (
        Index("idx_usage_key_time", "key_id", "used_at"),
    )


# =============================================================================
# RUNS & ACTIVITY
# =============================================================================

class SerpRun(Base):
    """Persisted result of one auto-triggered check"""
    __tablename__ = "serp_runs"

    id = Column(String(36), primary_key=True, default=_new_id)
    brand_id = Column(String(36), ForeignKey("brands.id"), nullable=False)

    query = Column(String(512), nullable=False)
    trigger = Column(Enum(RunTrigger), nullable=False, default=RunTrigger.AUTO)
    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    params = Column(JSON, default=dict)  # gl, hl, num, device

    # Key that served the request
    key_id = Column(String(36))
    key_name = Column(String(255), default="")
    key_remaining = Column(Float)

    # Summary
    own_count = Column(Integer, default=0)
    competitor_count = Column(Integer, default=0)
    unknown_count = Column(Integer, default=0)
    best_own_rank = Column(Integer)

    # Full classified rows
    results = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)

    brand = relationship("Brand", back_populates="runs")

    __table_args__ = (
        Index("idx_run_brand_checked", "brand_id", "checked_at"),
        Index("idx_run_trigger", "trigger"),
    )


class ActivityLog(Base):
    """Domain changes and auto-check lifecycle events"""
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    action = Column(Enum(ActivityAction), nullable=False)

    domain = Column(String(512), default="")
    domain_host_key = Column(String(255), default="")
    note = Column(Text, default="")
    brand_id = Column(String(36), ForeignKey("brands.id"), nullable=True)
    actor = Column(String(255))
    meta = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_activity_action", "action"),
        Index("idx_activity_created", "created_at"),
    )
