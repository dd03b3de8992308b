"""Storage failures: reads map to 503, writes roll back with 500, failed promotions still render."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from liveclass.core.models import LiveClass

ADMIN_CLASSES = "/api/v1/admin/classes"
PUBLIC_CLASSES = "/api/v1/classes"
M3U8 = "https://cdn.example.com/hls/abc/index_4.m3u8"


async def failing_execute(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("database is unavailable"))


async def failing_commit():
    raise SQLAlchemyError("commit failed")


async def add_row(db: AsyncSession, **fields) -> LiveClass:
    values = {"title": "Row", "batchname": "Batch", "streamlink": M3U8, "m3u8link": M3U8, "status": "scheduled"}
    values.update(fields)
    row = LiveClass(**values)
    db.add(row)
    await db.commit()
    return row


async def stored_status(session_factory: async_sessionmaker, class_id) -> str:
    async with session_factory() as db:
        result = await db.execute(select(LiveClass.status).where(LiveClass.id == class_id))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_board_read_failure_returns_503(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    await add_row(db_session)
    monkeypatch.setattr(db_session, "execute", failing_execute)

    response = await client.get(PUBLIC_CLASSES)
    assert response.status_code == 503
    assert response.json()["detail"] == "Could not fetch classes from the database"


@pytest.mark.asyncio
async def test_single_class_read_failure_returns_503(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    row = await add_row(db_session)
    monkeypatch.setattr(db_session, "execute", failing_execute)

    assert (await client.get(f"{PUBLIC_CLASSES}/{row.id}")).status_code == 503
    assert (await client.get(f"{PUBLIC_CLASSES}/{row.id}/watch")).status_code == 503


@pytest.mark.asyncio
async def test_write_failure_rolls_back_and_returns_500(
    client: AsyncClient,
    auth_headers,
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
    monkeypatch,
) -> None:
    row = await add_row(db_session)
    class_id = row.id

    with monkeypatch.context() as patch:
        patch.setattr(db_session, "commit", failing_commit)
        response = await client.post(f"{ADMIN_CLASSES}/{class_id}/start", headers=auth_headers)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to start class"

    assert await stored_status(session_factory, class_id) == "scheduled"
    response = await client.get(f"{ADMIN_CLASSES}/{class_id}", headers=auth_headers)
    assert response.json()["status"] == "scheduled"
    assert response.json()["starttime"] is None


@pytest.mark.asyncio
async def test_create_failure_returns_500(
    client: AsyncClient, auth_headers, db_session: AsyncSession, monkeypatch
) -> None:
    monkeypatch.setattr(db_session, "commit", failing_commit)
    response = await client.post(
        ADMIN_CLASSES,
        json={"title": "T", "batchname": "B", "streamlink": M3U8},
        headers=auth_headers,
    )
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to save class"


@pytest.mark.asyncio
async def test_failed_promotion_still_shows_promoted_state(
    client: AsyncClient,
    auth_headers,
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
    monkeypatch,
) -> None:
    now = datetime.now(timezone.utc)
    row = await add_row(db_session, scheduledstarttime=now - timedelta(minutes=1), autostart=True)
    class_id = row.id

    with monkeypatch.context() as patch:
        patch.setattr(db_session, "commit", failing_commit)

        response = await client.post(f"{ADMIN_CLASSES}/refresh", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["started"] == 1
        assert data["persisted"] is False

        board = (await client.get(PUBLIC_CLASSES)).json()
        assert [c["id"] for c in board["live"]] == [str(class_id)]
        assert board["live"][0]["status"] == "live"

    assert await stored_status(session_factory, class_id) == "scheduled"

    data = (await client.post(f"{ADMIN_CLASSES}/refresh", headers=auth_headers)).json()
    assert data["started"] == 1
    assert data["persisted"] is True
    assert await stored_status(session_factory, class_id) == "live"
