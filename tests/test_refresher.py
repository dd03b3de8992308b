import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from liveclass.api.v1.live_classes.refresher import ClassRefresher
from liveclass.core.models import LiveClass

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


async def add_due_class(db: AsyncSession) -> LiveClass:
    row = LiveClass(
        title="Due",
        batchname="Batch",
        status="scheduled",
        scheduledstarttime=NOW - timedelta(minutes=1),
        autostart=True,
    )
    db.add(row)
    await db.commit()
    return row


@pytest.mark.asyncio
async def test_refresh_promotes_due_classes(
    session_factory: async_sessionmaker, db_session: AsyncSession
) -> None:
    row = await add_due_class(db_session)
    refresher = ClassRefresher(session_factory, interval_seconds=60, clock=lambda: NOW)

    result = await refresher.refresh()

    assert result is not None
    assert result.started == 1
    assert result.ended == 0
    assert result.persisted is True
    assert refresher.last_result == result

    async with session_factory() as db:
        status = (await db.execute(select(LiveClass.status).where(LiveClass.id == row.id))).scalar_one()
    assert status == "live"

    again = await refresher.refresh()
    assert again.started == 0


@pytest.mark.asyncio
async def test_refresh_skips_while_another_is_running(session_factory: async_sessionmaker) -> None:
    refresher = ClassRefresher(session_factory, interval_seconds=60, clock=lambda: NOW)
    async with refresher._lock:
        assert await refresher.refresh() is None
    assert refresher.last_result is None


@pytest.mark.asyncio
async def test_start_and_stop(session_factory: async_sessionmaker, db_session: AsyncSession) -> None:
    await add_due_class(db_session)
    refresher = ClassRefresher(session_factory, interval_seconds=3600, clock=lambda: NOW)

    refresher.start()
    assert refresher.running
    for _ in range(100):
        if refresher.last_result is not None:
            break
        await asyncio.sleep(0.01)

    assert refresher.last_result is not None
    assert refresher.last_result.started == 1

    await refresher.stop()
    assert not refresher.running
