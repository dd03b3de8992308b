"""Periodic class refresh: promotes due classes even when nobody is reading the board."""

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.core.exceptions import ServiceError

from . import service
from .schemas import RefreshResponse

logger = logging.getLogger(__name__)


class ClassRefresher:
    """Runs one refresh at a time; the next tick is scheduled only after the previous one finishes."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        interval_seconds: float,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._worker: Optional[asyncio.Task] = None
        self.last_result: Optional[RefreshResponse] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def refresh(self) -> Optional[RefreshResponse]:
        """One read+promote+write cycle. Returns None when another cycle is already in progress."""
        if self._lock.locked():
            logger.debug("Refresh already in progress; skipping")
            return None
        async with self._lock:
            now = self._clock() if self._clock else None
            async with self._session_factory() as db:
                result = await service.run_refresh(db, now)
            if result.started or result.ended:
                logger.info(
                    "Refresh: %d started, %d ended (persisted=%s)",
                    result.started,
                    result.ended,
                    result.persisted,
                )
            self.last_result = result
            return result

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except ServiceError as e:
                logger.error("Class refresh failed: %s", e.message)
            except Exception:  # noqa: BLE001 - keep the loop alive; next tick retries
                logger.exception("Class refresh failed")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self._run(), name="class-refresher")
        logger.info("Class refresher started (every %ss)", self._interval)

    async def stop(self) -> None:
        worker = self._worker
        self._worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
            logger.info("Class refresher stopped")
