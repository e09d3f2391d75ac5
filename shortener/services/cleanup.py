import asyncio
import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import crud
from ..expiration import ensure_utc, utc_now
from ..observability import CLEANUP_ERRORS_TOTAL, CLEANUP_REMOVED_TOTAL, CLEANUP_RUNS_TOTAL
from ..redis import RedisClient

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_MINUTES = 1
CLEANUP_LOCK_KEY = "lock:cleanup"


class CleanupSweeper:
    """Periodically deletes links whose expiry has passed.

    Each sweep opens its own session from ``session_factory`` and releases it
    before sleeping. A failed sweep is logged and the next one runs on
    schedule. ``stop()`` wakes the sleeping loop immediately.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_minutes: int = DEFAULT_CLEANUP_MINUTES,
        redis_client: Optional[RedisClient] = None,
    ):
        if interval_minutes <= 0:
            logger.warning(
                f"Invalid cleanup interval ({interval_minutes} min), "
                f"using default of {DEFAULT_CLEANUP_MINUTES} min"
            )
            interval_minutes = DEFAULT_CLEANUP_MINUTES

        self.session_factory = session_factory
        self.interval = timedelta(minutes=interval_minutes)
        self.redis_client = redis_client
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        logger.info(f"Cleanup sweeper configured. Interval: {self.interval}")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name="cleanup-sweeper")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        logger.info("Stopping cleanup sweeper...")
        self._stopping.set()
        try:
            await self._task
        finally:
            self._task = None

    async def run(self):
        logger.info("Cleanup sweeper started")
        while not self._stopping.is_set():
            try:
                await self.sweep_once()
            except Exception as e:
                CLEANUP_ERRORS_TOTAL.inc()
                logger.error(f"Error in cleanup job: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval.total_seconds())
            except asyncio.TimeoutError:
                pass
        logger.info("Cleanup sweeper finished")

    async def sweep_once(self) -> List[str]:
        """Delete every expired link in one batch and return their short codes."""
        if self.redis_client is not None:
            ttl = max(1, int(self.interval.total_seconds()) - 1)
            if not await self.redis_client.acquire_lock(CLEANUP_LOCK_KEY, ttl):
                logger.debug("Another worker holds the cleanup lock, skipping this tick")
                return []

        CLEANUP_RUNS_TOTAL.inc()
        now = utc_now()
        async with self.session_factory() as db:
            removed = await crud.delete_expired_links(db, now)

        if not removed:
            logger.debug(f"No expired links found at {now.isoformat()}")
            return []

        codes = [row.short_code for row in removed]
        CLEANUP_REMOVED_TOTAL.inc(len(codes))
        logger.info(
            f"Cleanup finished: {len(codes)} expired links removed at {now.isoformat()}. "
            f"Removed codes: [{', '.join(codes)}]",
            extra={"removed_codes": codes},
        )
        for row in removed:
            logger.debug(
                f"Link removed: {row.short_code} (created: {ensure_utc(row.created_at).isoformat()}, "
                f"expired: {ensure_utc(row.expires_at).isoformat()}, clicks: {row.clicks})"
            )
        return codes
