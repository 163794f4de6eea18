"""
Run Orchestrator

Drives brand checks end to end:
1. Resolve the brand and search parameters
2. Fetch results through the key rotation service
3. Rebuild the catalog index and classify the top-N results
4. Summarize badges, cache manual results, persist auto runs

Sweeps check every active brand sequentially with cooperative
cancellation between brands.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, ContextManager, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from serptrack.database import repository
from serptrack.database.models import RunTrigger
from serptrack.database.session import get_db_context
from serptrack.errors import InvalidInputError
from serptrack.keys.rotation import KeyCredential, KeyRotationService
from serptrack.matching import Badge, build_index, classify, derive_badge
from serptrack.matching.index import CatalogIndex
from serptrack.persistence.cache import ResultCache, make_cache_key
from serptrack.utils.config import Settings, get_settings
from serptrack.utils.domain import extract_host_from_link

from .client import DEFAULT_TITLE, SearchResultItem, SerperClient

logger = logging.getLogger(__name__)


VALID_DEVICES = ("desktop", "mobile")
_COUNTRY_PATTERN = re.compile(r"^[a-z]{2}$")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class SearchResultRow:
    """One classified search result."""
    rank: int
    title: str
    snippet: str
    link: str
    domain_host: str
    badge: Badge
    match_type: str
    matched_domain: Optional[Mapping[str, Any]] = None
    matched_brand: Optional[Mapping[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "title": self.title,
            "snippet": self.snippet,
            "link": self.link,
            "domain_host": self.domain_host,
            "badge": self.badge.value,
            "match_type": self.match_type,
            "matched_domain": dict(self.matched_domain) if self.matched_domain is not None else None,
            "matched_brand": dict(self.matched_brand) if self.matched_brand is not None else None,
        }


@dataclass(frozen=True)
class RunResult:
    """Outcome of one brand check. Read-only once assembled, so cached copies can be shared."""
    brand: Mapping[str, Any]
    query: str
    params: Mapping[str, Any]
    checked_at: datetime
    results: Tuple[SearchResultRow, ...]
    key_id: Optional[str] = None
    key_name: str = ""
    key_remaining: Optional[float] = None
    own_count: int = 0
    competitor_count: int = 0
    unknown_count: int = 0
    best_own_rank: Optional[int] = None
    trigger: RunTrigger = RunTrigger.MANUAL
    cached: bool = False

    @property
    def brand_id(self) -> str:
        return self.brand["id"]

    def to_record(self) -> Dict[str, Any]:
        """Flat dict accepted by repository.save_run()."""
        return {
            "brand_id": self.brand_id,
            "query": self.query,
            "trigger": self.trigger.value,
            "checked_at": self.checked_at,
            "params": dict(self.params),
            "key_id": self.key_id,
            "key_name": self.key_name,
            "key_remaining": self.key_remaining,
            "own_count": self.own_count,
            "competitor_count": self.competitor_count,
            "unknown_count": self.unknown_count,
            "best_own_rank": self.best_own_rank,
            "results": [row.to_dict() for row in self.results],
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view for API responses."""
        record = self.to_record()
        record["brand"] = dict(self.brand)
        record["checked_at"] = self.checked_at.isoformat()
        record["cached"] = self.cached
        return record


@dataclass(frozen=True)
class SweepProgress:
    processed_brands: int
    total_brands: int
    brand_code: str


@dataclass(frozen=True)
class BrandOutcome:
    """Per-brand result of a sweep; errors are captured, not raised."""
    brand_id: str
    brand_code: str
    ok: bool
    checked_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class SweepResult:
    outcomes: List[BrandOutcome] = field(default_factory=list)
    stopped: bool = False

    @property
    def ok_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def fail_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)


# =============================================================================
# HELPERS
# =============================================================================

def summarize_rows(rows: Sequence[SearchResultRow]) -> Dict[str, Any]:
    """Badge counts and the best (lowest) OWN rank, or None."""
    own_ranks = [row.rank for row in rows if row.badge is Badge.OWN]
    return {
        "own_count": len(own_ranks),
        "competitor_count": sum(1 for row in rows if row.badge is Badge.COMPETITOR),
        "unknown_count": sum(1 for row in rows if row.badge is Badge.UNKNOWN),
        "best_own_rank": min(own_ranks) if own_ranks else None,
    }


def classify_results(
    items: Sequence[SearchResultItem],
    index: CatalogIndex,
    brand_id: str,
    allow_contains: bool = True,
) -> List[SearchResultRow]:
    """Classify results in order; rank is the 1-based position."""
    rows = []
    for position, item in enumerate(items, start=1):
        link = item.link or ""
        host = extract_host_from_link(link)
        match = classify(host, link, index, allow_contains=allow_contains)
        matched = match.matched_domain

        row = SearchResultRow(
            rank=position,
            title=item.title or DEFAULT_TITLE,
            snippet=item.snippet or "",
            link=link,
            domain_host=host,
            badge=derive_badge(matched, brand_id),
            match_type=match.match_type.value,
            matched_domain=MappingProxyType(matched.summary()) if matched else None,
            matched_brand=MappingProxyType(matched.brand_summary()) if matched else None,
        )
        logger.debug(f"#{row.rank} {host or '-'} -> {row.match_type} ({row.badge.value})")
        rows.append(row)
    return rows


def normalize_country(country: Optional[str], default: str) -> str:
    value = (country or default or "").strip().lower()
    if not _COUNTRY_PATTERN.match(value):
        raise InvalidInputError(f"Invalid country code: {country!r}")
    return value


def normalize_device(device: Optional[str], default: str) -> str:
    value = (device or default or "").strip().lower()
    if value not in VALID_DEVICES:
        raise InvalidInputError(f"Invalid device: {device!r} (expected desktop or mobile)")
    return value


# =============================================================================
# SERVICE
# =============================================================================

class SerpRunService:
    """
    Runs brand checks and sweeps.

    Usage:
        async with SerperClient() as client:
            service = SerpRunService(KeyRotationService(), client)
            result = await service.run_check_for_brand(brand_id, query="tokopedia")
            print(result.best_own_rank)
    """

    def __init__(
        self,
        rotation: KeyRotationService,
        client: SerperClient,
        cache: Optional[ResultCache] = None,
        session_factory: Callable[[], ContextManager[Session]] = get_db_context,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.settings = settings or get_settings()
        self.rotation = rotation
        self.client = client
        self.cache = cache if cache is not None else ResultCache(self.settings.RESULT_CACHE_TTL_SECONDS)
        self._session_factory = session_factory
        self._clock = clock

    async def run_check_for_brand(
        self,
        brand_id: str,
        query: Optional[str] = None,
        country: Optional[str] = None,
        device: Optional[str] = None,
        trigger: RunTrigger = RunTrigger.MANUAL,
        skip_cache: bool = False,
    ) -> RunResult:
        """
        Check where a brand's domains rank for one query.

        Args:
            brand_id: Active brand to check
            query: Search query (defaults to the brand code, then its name)
            country: Two-letter country code (defaults to DEFAULT_COUNTRY)
            device: "desktop" or "mobile" (defaults to DEFAULT_DEVICE)
            trigger: MANUAL results are cached; AUTO results are persisted
            skip_cache: Bypass the cache lookup

        Returns:
            RunResult (cached=True when served from the cache)

        Raises:
            BrandNotFoundError: Unknown or inactive brand
            InvalidInputError: Bad country, device or empty query
            NoActiveKeysError / AllKeysFailedError: From key rotation
        """
        settings = self.settings
        with self._session_factory() as db:
            brand = repository.get_active_brand(db, brand_id)
            brand_info = {"id": brand.id, "code": brand.code, "name": brand.name, "color": brand.color}

        query_value = (query or "").strip() or brand_info["code"] or brand_info["name"]
        if not query_value:
            raise InvalidInputError("Search query is empty")

        params = {
            "gl": normalize_country(country, settings.DEFAULT_COUNTRY),
            "hl": settings.DEFAULT_LANGUAGE,
            "num": settings.RESULT_DEPTH,
            "device": normalize_device(device, settings.DEFAULT_DEVICE),
        }
        cache_key = make_cache_key(brand_info["id"], query_value, params["gl"], params["hl"], params["device"])

        if not skip_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"Serving cached check for {brand_info['code']} ({query_value!r})")
                return replace(cached, cached=True)

        async def request(key: KeyCredential):
            return await self.client.search(
                query_value,
                api_key=key.secret,
                country=params["gl"],
                language=params["hl"],
                device=params["device"],
                num=params["num"],
            )

        rotated = await self.rotation.with_rotating_key(request)
        items = rotated.data.results[: settings.RESULT_DEPTH]

        with self._session_factory() as db:
            index = build_index(repository.find_active_domains(db))

        rows = classify_results(
            items,
            index,
            brand_info["id"],
            allow_contains=settings.CONTAINS_MATCH_ENABLED,
        )

        result = RunResult(
            brand=MappingProxyType(brand_info),
            query=query_value,
            params=MappingProxyType(params),
            checked_at=self._clock(),
            results=tuple(rows),
            key_id=rotated.key_id,
            key_name=rotated.key_name,
            key_remaining=rotated.remaining,
            trigger=trigger,
            **summarize_rows(rows),
        )

        if trigger is RunTrigger.AUTO:
            with self._session_factory() as db:
                repository.save_run(db, result.to_record())

        self.cache.set(cache_key, result)
        logger.info(
            f"Checked {brand_info['code']} ({query_value!r}, {params['gl']}/{params['device']}): "
            f"own={result.own_count} competitor={result.competitor_count} "
            f"unknown={result.unknown_count} best={result.best_own_rank} via '{rotated.key_name}'"
        )
        return result

    async def run_auto_check_for_all_brands(
        self,
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[SweepProgress], None]] = None,
    ) -> SweepResult:
        """
        Check every active brand in code order, one at a time.

        should_stop is polled before each brand; an in-flight check always
        completes. A brand's failure is recorded in its outcome and the
        sweep moves on.

        Returns:
            SweepResult with one outcome per attempted brand
        """
        with self._session_factory() as db:
            brands = [(brand.id, brand.code, brand.name) for brand in repository.find_active_brands(db)]

        sweep = SweepResult()
        total = len(brands)
        logger.info(f"Starting sweep over {total} brands")

        for processed, (brand_id, code, name) in enumerate(brands, start=1):
            if should_stop is not None and should_stop():
                sweep.stopped = True
                logger.info(f"Sweep stopped after {len(sweep.outcomes)}/{total} brands")
                break

            try:
                result = await self.run_check_for_brand(
                    brand_id,
                    query=code or name,
                    trigger=RunTrigger.AUTO,
                    skip_cache=True,
                )
                sweep.outcomes.append(BrandOutcome(brand_id, code, ok=True, checked_at=result.checked_at))
            except Exception as e:
                logger.warning(f"Sweep check failed for {code}: {e}")
                sweep.outcomes.append(BrandOutcome(brand_id, code, ok=False, error=str(e)))

            if on_progress is not None:
                on_progress(SweepProgress(processed_brands=processed, total_brands=total, brand_code=code))

        logger.info(
            f"Sweep finished: {sweep.ok_count} ok, {sweep.fail_count} failed, stopped={sweep.stopped}"
        )
        return sweep
