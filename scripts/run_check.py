#!/usr/bin/env python3
"""
SERP Check Runner

Runs a single brand check or a full sweep from the command line.

Usage:
    # Set environment variables first:
    export SERP_API_KEYS=key_one,key_two
    export DATABASE_URL=postgresql://...   # optional, SQLite otherwise

    # Check one brand (by code):
    python scripts/run_check.py TOKO

    # With options:
    python scripts/run_check.py TOKO --query "tokopedia promo" --country id --device mobile

    # Sweep every active brand and persist the runs:
    python scripts/run_check.py --sweep

    # Show per-key quota:
    python scripts/run_check.py --keys
"""

import asyncio
import argparse
import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from serptrack.collector import AutoCheckRunner, SerperClient, SerpRunService
from serptrack.database import get_db_context, init_db, repository
from serptrack.database.models import RunTrigger
from serptrack.errors import SerpTrackError
from serptrack.keys import (
    KeyRotationService,
    apply_baseline,
    build_key_summaries,
    ensure_keys_from_env,
)
from serptrack.utils.config import get_settings


def bootstrap_keys():
    """Seed keys from SERP_API_KEYS and apply the configured baseline."""
    settings = get_settings()
    with get_db_context() as db:
        ensure_keys_from_env(db, settings.SERP_API_KEYS)
        apply_baseline(db, settings.SERPER_BASELINE_REMAINING, settings.SERPER_BASELINE_KEY_NAME)


def resolve_brand_id(code: str) -> str:
    with get_db_context() as db:
        for brand in repository.find_active_brands(db):
            if brand.code.lower() == code.lower():
                return brand.id
    raise SerpTrackError(f"No active brand with code {code!r}", status_code=404)


def print_keys():
    settings = get_settings()
    with get_db_context() as db:
        summaries = build_key_summaries(db, settings.SERPER_MONTHLY_LIMIT)

    print("\n" + "="*70)
    print("API KEYS")
    print("="*70)
    for summary in summaries:
        state = "active" if summary.is_active else "inactive"
        print(
            f"{summary.name:<16} {summary.masked_key:<12} {state:<9} "
            f"month={summary.requests_this_month:<5} "
            f"remaining={summary.remaining_display} ({summary.remaining_tier})"
        )
        if summary.last_error:
            print(f"    last error: {summary.last_error}")


async def run_single(code: str, query: str = None, country: str = None, device: str = None, save: bool = False):
    """Check one brand and print the classified results."""
    brand_id = resolve_brand_id(code)

    async with SerperClient() as client:
        service = SerpRunService(KeyRotationService(), client)
        result = await service.run_check_for_brand(
            brand_id,
            query=query,
            country=country,
            device=device,
            trigger=RunTrigger.AUTO if save else RunTrigger.MANUAL,
        )

    print("\n" + "="*70)
    print(f"{result.brand['code']} - {result.query!r} ({result.params['gl']}/{result.params['device']})")
    print("="*70)
    for row in result.results:
        matched = row.matched_brand["code"] if row.matched_brand else "-"
        print(f"{row.rank:>2}. [{row.badge.value:<10}] {row.domain_host:<35} {row.match_type:<8} {matched}")
    print("-"*70)
    print(
        f"OWN={result.own_count}  COMPETITOR={result.competitor_count}  "
        f"UNKNOWN={result.unknown_count}  best own rank={result.best_own_rank}"
    )
    print(f"Key: {result.key_name} (remaining={result.key_remaining})")


async def run_sweep():
    """Check all active brands sequentially."""
    async with SerperClient() as client:
        runner = AutoCheckRunner(SerpRunService(KeyRotationService(), client))
        sweep = await runner.run_now(source="cli")

    print("\n" + "="*70)
    print("SWEEP COMPLETE")
    print("="*70)
    for outcome in sweep.outcomes:
        status = "ok" if outcome.ok else f"FAILED: {outcome.error}"
        print(f"{outcome.brand_code:<12} {status}")
    print(f"\n{sweep.ok_count} ok, {sweep.fail_count} failed, stopped={sweep.stopped}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Check where a brand's domains rank in Google results"
    )
    parser.add_argument(
        "brand",
        nargs="?",
        help="Brand code to check (e.g., TOKO)"
    )
    parser.add_argument(
        "--query",
        default=None,
        help="Search query (default: brand code)"
    )
    parser.add_argument(
        "--country",
        default=None,
        help="Two-letter country code (default: DEFAULT_COUNTRY)"
    )
    parser.add_argument(
        "--device",
        default=None,
        choices=["desktop", "mobile"],
        help="Device type (default: DEFAULT_DEVICE)"
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist the run like an auto check"
    )
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Check every active brand"
    )
    parser.add_argument(
        "--keys",
        action="store_true",
        help="Show per-key quota and exit"
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables before running"
    )

    args = parser.parse_args()

    if args.init_db:
        init_db()

    bootstrap_keys()

    if args.keys:
        print_keys()
        return

    if not args.sweep and not args.brand:
        parser.error("a brand code is required unless --sweep or --keys is given")

    try:
        if args.sweep:
            asyncio.run(run_sweep())
        else:
            asyncio.run(run_single(args.brand, args.query, args.country, args.device, args.save))
    except SerpTrackError as e:
        logger.error(f"Check failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
