"""
Database Module for the SERP Brand Tracker

Provides:
- SQLAlchemy models for brands, domains, API keys, runs and activity
- Session management (PostgreSQL or SQLite)
- Repository functions used by the rotation service and orchestrator

Usage:
    from serptrack.database import get_db_context, repository

    with get_db_context() as db:
        domains = repository.find_active_domains(db)
"""

from .models import (
    Base,
    Brand,
    Domain,
    ApiKey,
    KeyRotationState,
    KeyUsageEvent,
    SerpRun,
    ActivityLog,
    RunTrigger,
    ActivityAction,
)
from .session import (
    get_database_url,
    get_engine,
    reset_engine,
    get_session_factory,
    get_db_context,
    init_db,
    check_db_connection,
)
from . import repository

__all__ = [
    # Models
    "Base",
    "Brand",
    "Domain",
    "ApiKey",
    "KeyRotationState",
    "KeyUsageEvent",
    "SerpRun",
    "ActivityLog",
    "RunTrigger",
    "ActivityAction",
    # Session
    "get_database_url",
    "get_engine",
    "reset_engine",
    "get_session_factory",
    "get_db_context",
    "init_db",
    "check_db_connection",
    # Repository
    "repository",
]
