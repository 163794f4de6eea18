"""
Collector Module

Search provider client, run orchestration and the sweep runner.

Usage:
    from serptrack.collector import SerperClient, SerpRunService
    from serptrack.keys import KeyRotationService

    async with SerperClient() as client:
        service = SerpRunService(KeyRotationService(), client)
        result = await service.run_check_for_brand(brand_id)
"""

from .client import (
    SerperClient,
    SearchResultItem,
    SearchResponse,
    parse_organic_results,
)
from .orchestrator import (
    SerpRunService,
    SearchResultRow,
    RunResult,
    BrandOutcome,
    SweepResult,
    SweepProgress,
    classify_results,
    summarize_rows,
)
from .runner import (
    AutoCheckRunner,
    RunnerStatus,
    RunSummary,
    record_activity_sink,
)

__all__ = [
    # Client
    "SerperClient",
    "SearchResultItem",
    "SearchResponse",
    "parse_organic_results",
    # Orchestrator
    "SerpRunService",
    "SearchResultRow",
    "RunResult",
    "BrandOutcome",
    "SweepResult",
    "SweepProgress",
    "classify_results",
    "summarize_rows",
    # Runner
    "AutoCheckRunner",
    "RunnerStatus",
    "RunSummary",
    "record_activity_sink",
]
