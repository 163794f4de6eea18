"""
API Key Rotation

Spreads outbound search requests across several provider API keys:
- Round-robin cursor persisted across calls and restarts
- On failure, the next key is tried within the same call
- Per-key usage, errors and quota signals recorded after every attempt

One rotation decision (pick key, attempt, record outcome) runs inside a
single asyncio lock, so concurrent checks never act on a stale cursor.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, ContextManager, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from serptrack.database import repository
from serptrack.database.models import ApiKey
from serptrack.database.session import get_db_context
from serptrack.errors import AllKeysFailedError, NoActiveKeysError

from .quota import RATE_LIMIT_STATUSES, extract_remaining

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyCredential:
    """What a request function receives for one attempt."""
    id: str
    name: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class RotationResult:
    """Successful response plus the key that served it."""
    data: Any
    key_id: str
    key_name: str
    remaining: Optional[float] = None


RequestFn = Callable[[KeyCredential], Awaitable[Any]]


def order_candidates(keys: Sequence[ApiKey], cursor: int) -> List[ApiKey]:
    """Active keys starting at the cursor, wrapping around."""
    if not keys:
        return []
    offset = (cursor or 0) % len(keys)
    return list(keys[offset:]) + list(keys[:offset])


def advance_cursor(keys: Sequence[ApiKey], used_key_id: str) -> int:
    """Cursor value pointing just past the key that was used."""
    for index, key in enumerate(keys):
        if key.id == used_key_id:
            return (index + 1) % len(keys)
    return 0


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__ or "Unknown API key failure"


class KeyRotationService:
    """
    Runs provider requests with rotating API keys.

    Usage:
        rotation = KeyRotationService()
        result = await rotation.with_rotating_key(
            lambda key: client.search("brand", api_key=key.secret)
        )
        result.data, result.key_name, result.remaining
    """

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_db_context,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Args:
            session_factory: Context manager yielding a Session that commits on exit
            clock: Source of "now" for usage timestamps
        """
        self._session_factory = session_factory
        self._clock = clock
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _loop_lock(self) -> asyncio.Lock:
        # An asyncio.Lock binds to the loop it first waits on; rebuild per loop
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def with_rotating_key(self, request_fn: RequestFn) -> RotationResult:
        """
        Call request_fn with each candidate key until one succeeds.

        request_fn receives a KeyCredential and returns a response; if the
        response has `headers` / `body` attributes they are read for the
        remaining quota.

        Raises:
            NoActiveKeysError: No active keys are configured
            AllKeysFailedError: Every candidate failed; wraps the last error
        """
        async with self._loop_lock():
            with self._session_factory() as db:
                active_keys = repository.list_api_keys(db, active_only=True)
                if not active_keys:
                    raise NoActiveKeysError("No active search API keys configured")

                state = repository.get_rotation_state(db)
                candidates = order_candidates(active_keys, state.cursor)

                last_error: Optional[BaseException] = None
                attempts: List[Tuple[str, str]] = []

                for key in candidates:
                    credential = KeyCredential(id=key.id, name=key.name, secret=key.secret_value)
                    try:
                        response = await request_fn(credential)
                    except Exception as e:
                        last_error = e
                        attempts.append((key.name, _error_message(e)))
                        self._record_failure(db, key, e)
                        db.commit()
                        logger.warning(
                            f"API key '{key.name}' failed (attempt {len(attempts)}/{len(candidates)}): {e}"
                        )
                        continue

                    remaining = self._record_success(db, key, response)
                    state.cursor = advance_cursor(active_keys, key.id)
                    db.commit()

                    logger.debug(f"API key '{key.name}' served request (remaining={remaining})")
                    return RotationResult(
                        data=response,
                        key_id=key.id,
                        key_name=key.name,
                        remaining=remaining,
                    )

                logger.error(f"All {len(candidates)} API keys failed; last error: {last_error}")
                raise AllKeysFailedError(last_error, attempts) from last_error

    def _record_success(self, db: Session, key: ApiKey, response: Any) -> Optional[float]:
        now = self._clock()
        key.last_used_at = now
        key.total_request_count = (key.total_request_count or 0) + 1
        key.last_error = ""
        key.exhausted_at = None
        key.last_known_remaining = extract_remaining(
            getattr(response, "headers", None),
            getattr(response, "body", None),
        )
        repository.record_key_usage(db, key.id, now, success=True, status_code=getattr(response, "status_code", None))
        return key.last_known_remaining

    def _record_failure(self, db: Session, key: ApiKey, error: BaseException) -> None:
        now = self._clock()
        status_code = getattr(error, "status_code", None)

        key.last_used_at = now
        key.total_request_count = (key.total_request_count or 0) + 1
        key.last_error = _error_message(error)

        remaining = extract_remaining(getattr(error, "headers", None), getattr(error, "body", None))
        if remaining is not None:
            key.last_known_remaining = remaining

        if status_code in RATE_LIMIT_STATUSES:
            key.exhausted_at = now

        repository.record_key_usage(db, key.id, now, success=False, status_code=status_code)
