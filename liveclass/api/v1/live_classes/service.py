import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from liveclass.core.config import settings
from liveclass.core.enums import Bucket, ClassStatus, ImportTargetStatus, LifecycleEvent
from liveclass.core.exceptions import ServiceError
from liveclass.core.models import LiveClass

from . import links
from .lifecycle import (
    Classification,
    Promotion,
    as_utc,
    auto_end_at,
    classify,
    next_status,
    transition_changes,
    utcnow,
)
from .schemas import (
    AdminClassBoardResponse,
    ClassBoardResponse,
    ClassCreate,
    ClassImportResponse,
    ClassImportRow,
    ClassResponse,
    ClassStatsResponse,
    ClassUpdate,
    RefreshResponse,
    WatchLinkResponse,
)

logger = logging.getLogger(__name__)

BucketIds = Dict[Bucket, List[UUID]]


def _class_to_response(c: LiveClass, changes: Optional[Dict[str, Any]] = None) -> ClassResponse:
    """Response for a row, with not-yet-persisted promotion `changes` laid over it."""
    changes = changes or {}

    def value(name: str) -> Any:
        return changes[name] if name in changes else getattr(c, name)

    return ClassResponse(
        id=c.id,
        title=links.clean_title(c.title),
        batchname=links.clean_title(c.batchname),
        thumbnail=c.thumbnail or "",
        streamlink=c.streamlink or "",
        m3u8link=c.m3u8link or "",
        defaultquality=c.defaultquality,
        quality_label=links.quality_label(c.defaultquality),
        status=value("status"),
        starttime=as_utc(value("starttime")),
        endtime=as_utc(value("endtime")),
        scheduledstarttime=as_utc(c.scheduledstarttime),
        autostart=bool(c.autostart),
        autoend=bool(c.autoend),
        autoendduration=c.autoendduration or settings.auto_end_minutes,
        autoendtime=as_utc(value("autoendtime")),
        created_at=as_utc(c.created_at),
        updated_at=as_utc(c.updated_at),
    )


def _stream_fields(streamlink: str) -> Dict[str, Any]:
    """streamlink plus the fields derived from it; only recomputed when streamlink is written."""
    m3u8link = links.extract_m3u8_link(streamlink)
    return {
        "streamlink": streamlink,
        "m3u8link": m3u8link,
        "defaultquality": links.extract_quality(m3u8link),
    }


def _apply(row: LiveClass, changes: Dict[str, Any]) -> None:
    for name, value in changes.items():
        setattr(row, name, value)


async def _commit(db: AsyncSession, failure_message: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception(failure_message)
        raise ServiceError(failure_message, status.HTTP_500_INTERNAL_SERVER_ERROR) from e


async def _load_all(db: AsyncSession) -> Sequence[LiveClass]:
    try:
        result = await db.execute(
            select(LiveClass)
            .order_by(LiveClass.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()
    except SQLAlchemyError as e:
        logger.exception("Could not fetch classes")
        raise ServiceError(
            "Could not fetch classes from the database", status.HTTP_503_SERVICE_UNAVAILABLE
        ) from e


async def _get_row(db: AsyncSession, class_id: UUID) -> Optional[LiveClass]:
    try:
        result = await db.execute(
            select(LiveClass)
            .where(LiveClass.id == class_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.exception("Could not fetch class %s", class_id)
        raise ServiceError(
            "Could not fetch class from the database", status.HTTP_503_SERVICE_UNAVAILABLE
        ) from e


def _bucket_ids(classification: Classification) -> BucketIds:
    return {name: [r.id for r in classification.bucket(name)] for name in Bucket}


def _snapshot(rows: Sequence[LiveClass], classification: Classification) -> Dict[UUID, ClassResponse]:
    changes = {p.record_id: p.changes for p in classification.promotions}
    return {r.id: _class_to_response(r, changes.get(r.id)) for r in rows}


async def _write_promotion(db: AsyncSession, row: LiveClass, promotion: Promotion) -> bool:
    """Persist one promotion only while the row still has the status it was classified with."""
    result = await db.execute(
        update(LiveClass)
        .where(LiveClass.id == promotion.record_id, LiveClass.status == row.status)
        .values(**promotion.changes)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return False
    for name, value in promotion.changes.items():
        set_committed_value(row, name, value)
    return True


async def _promote(
    db: AsyncSession,
    rows: Sequence[LiveClass],
    now: datetime,
) -> Tuple[BucketIds, Dict[UUID, ClassResponse], RefreshResponse]:
    """
    Classify rows, then persist due promotions with guarded writes.

    A row whose status changed in storage since it was read (e.g. soft-deleted by an admin)
    is not promoted; it is re-read and shown as stored. Responses are built before the writes,
    so a failed commit still shows the promoted state while storage keeps the old one and the
    next refresh retries.
    """
    classification = classify(rows, now, settings.auto_end_minutes)
    buckets = _bucket_ids(classification)
    snapshot = _snapshot(rows, classification)
    if not classification.promotions:
        return buckets, snapshot, RefreshResponse(ran_at=now)

    by_id = {r.id: r for r in rows}
    applied: List[Promotion] = []
    stale: List[LiveClass] = []
    persisted = True
    try:
        for promotion in classification.promotions:
            row = by_id[promotion.record_id]
            if await _write_promotion(db, row, promotion):
                applied.append(promotion)
            else:
                stale.append(row)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to persist %d class promotions", len(classification.promotions))
        persisted = False
        applied = list(classification.promotions)
        stale = []

    for promotion in applied:
        logger.info(
            "Class %s promoted (%s)",
            promotion.record_id,
            ", ".join(e.value for e in promotion.events),
        )

    if stale:
        stale_ids = {r.id for r in stale}
        try:
            result = await db.execute(
                select(LiveClass)
                .where(LiveClass.id.in_(stale_ids))
                .execution_options(populate_existing=True)
            )
            present = {r.id: r for r in result.scalars().all()}
        except SQLAlchemyError as e:
            logger.exception("Could not re-read classes after a skipped promotion")
            raise ServiceError(
                "Could not fetch classes from the database", status.HTTP_503_SERVICE_UNAVAILABLE
            ) from e
        for class_id in stale_ids:
            current = present.get(class_id)
            logger.info(
                "Class %s changed during refresh (now %s); promotion skipped",
                class_id,
                current.status if current is not None else "purged",
            )
        # purged rows drop out of the result
        rows = [r for r in rows if r.id not in stale_ids or r.id in present]
        classification = classify(rows, now, settings.auto_end_minutes)
        buckets = _bucket_ids(classification)
        snapshot = _snapshot(rows, classification)

    summary = RefreshResponse(
        started=sum(1 for p in applied if LifecycleEvent.AUTO_START in p.events),
        ended=sum(1 for p in applied if LifecycleEvent.AUTO_END in p.events),
        persisted=persisted,
        ran_at=now,
    )
    return buckets, snapshot, summary


async def refresh_classes(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> Tuple[BucketIds, Dict[UUID, ClassResponse], RefreshResponse]:
    """Read every class, run the classifier and persist auto-start/auto-end promotions."""
    now = as_utc(now) or utcnow()
    rows = await _load_all(db)
    return await _promote(db, rows, now)


async def run_refresh(db: AsyncSession, now: Optional[datetime] = None) -> RefreshResponse:
    _, _, summary = await refresh_classes(db, now)
    return summary


def _bucket_responses(ids: List[UUID], snapshot: Dict[UUID, ClassResponse]) -> List[ClassResponse]:
    return [snapshot[i] for i in ids]


async def get_board(db: AsyncSession, now: Optional[datetime] = None) -> ClassBoardResponse:
    buckets, snapshot, summary = await refresh_classes(db, now)
    return ClassBoardResponse(
        live=_bucket_responses(buckets[Bucket.live], snapshot),
        upcoming=_bucket_responses(buckets[Bucket.upcoming], snapshot),
        completed=_bucket_responses(buckets[Bucket.completed], snapshot),
        generated_at=summary.ran_at,
    )


async def get_admin_board(db: AsyncSession, now: Optional[datetime] = None) -> AdminClassBoardResponse:
    buckets, snapshot, summary = await refresh_classes(db, now)
    return AdminClassBoardResponse(
        live=_bucket_responses(buckets[Bucket.live], snapshot),
        upcoming=_bucket_responses(buckets[Bucket.upcoming], snapshot),
        completed=_bucket_responses(buckets[Bucket.completed], snapshot),
        deleted=_bucket_responses(buckets[Bucket.deleted], snapshot),
        generated_at=summary.ran_at,
    )


async def list_classes(db: AsyncSession, now: Optional[datetime] = None) -> List[ClassResponse]:
    """All classes including deleted ones, newest first."""
    _, snapshot, _ = await refresh_classes(db, now)
    return list(snapshot.values())


async def get_class(
    db: AsyncSession,
    class_id: UUID,
    include_deleted: bool = False,
    now: Optional[datetime] = None,
) -> Optional[ClassResponse]:
    row = await _get_row(db, class_id)
    if not row:
        return None
    if row.status == ClassStatus.deleted.value and not include_deleted:
        return None
    _, snapshot, _ = await _promote(db, [row], as_utc(now) or utcnow())
    obj = snapshot[class_id]
    if obj.status == ClassStatus.deleted and not include_deleted:
        return None
    return obj


async def get_watch_link(
    db: AsyncSession,
    class_id: UUID,
    quality: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[WatchLinkResponse]:
    obj = await get_class(db, class_id, now=now)
    if not obj:
        return None
    if not obj.m3u8link:
        raise ServiceError("Class has no stream link", status.HTTP_409_CONFLICT)
    chosen = quality or obj.defaultquality
    return WatchLinkResponse(
        class_id=obj.id,
        status=obj.status,
        quality=chosen,
        quality_label=links.quality_label(chosen),
        url=links.build_video_url(obj.m3u8link, chosen, obj.status.value, settings.player_base_url),
    )


async def get_stats(db: AsyncSession) -> ClassStatsResponse:
    try:
        result = await db.execute(
            select(LiveClass.status, func.count(LiveClass.id)).group_by(LiveClass.status)
        )
        counts = {row[0]: row[1] for row in result.all()}
    except SQLAlchemyError as e:
        logger.exception("Could not count classes")
        raise ServiceError(
            "Could not fetch classes from the database", status.HTTP_503_SERVICE_UNAVAILABLE
        ) from e
    return ClassStatsResponse(
        total=sum(counts.values()),
        scheduled=counts.get(ClassStatus.scheduled.value, 0),
        live=counts.get(ClassStatus.live.value, 0),
        completed=counts.get(ClassStatus.completed.value, 0),
        deleted=counts.get(ClassStatus.deleted.value, 0),
    )


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    obj = LiveClass(
        title=links.clean_title(payload.title),
        batchname=links.clean_title(payload.batchname),
        thumbnail=payload.thumbnail.strip(),
        status=ClassStatus.scheduled.value,
        scheduledstarttime=as_utc(payload.scheduledstarttime),
        autostart=payload.autostart,
        autoend=payload.autoend,
        autoendduration=payload.autoendduration or settings.auto_end_minutes,
        **_stream_fields(payload.streamlink.strip()),
    )
    db.add(obj)
    await _commit(db, "Failed to save class")
    await db.refresh(obj)
    logger.info("Created class %s (%s)", obj.id, obj.title)
    return _class_to_response(obj)


async def update_class(
    db: AsyncSession,
    class_id: UUID,
    payload: ClassUpdate,
) -> Optional[ClassResponse]:
    obj = await _get_row(db, class_id)
    if not obj:
        return None
    if payload.title is not None:
        obj.title = links.clean_title(payload.title)
    if payload.batchname is not None:
        obj.batchname = links.clean_title(payload.batchname)
    if payload.thumbnail is not None:
        obj.thumbnail = payload.thumbnail.strip()
    if payload.streamlink is not None:
        _apply(obj, _stream_fields(payload.streamlink.strip()))
    if payload.clear_schedule:
        obj.scheduledstarttime = None
    elif payload.scheduledstarttime is not None:
        obj.scheduledstarttime = as_utc(payload.scheduledstarttime)
    if payload.autostart is not None:
        obj.autostart = payload.autostart
    if payload.autoend is not None:
        obj.autoend = payload.autoend
    if payload.autoendduration is not None:
        obj.autoendduration = payload.autoendduration
    if (
        obj.status == ClassStatus.live.value
        and obj.starttime is not None
        and (payload.autoend is not None or payload.autoendduration is not None)
    ):
        # autoendtime of a running class follows its auto-end settings
        obj.autoendtime = auto_end_at(obj, as_utc(obj.starttime), settings.auto_end_minutes)
    await _commit(db, "Failed to save class")
    await db.refresh(obj)
    return _class_to_response(obj)


async def apply_event(
    db: AsyncSession,
    class_id: UUID,
    event: LifecycleEvent,
    now: Optional[datetime] = None,
) -> Optional[ClassResponse]:
    """Manual lifecycle action (start, end, delete, recover). Raises InvalidTransition (409)."""
    obj = await _get_row(db, class_id)
    if not obj:
        return None
    changes = transition_changes(obj, event, as_utc(now) or utcnow(), settings.auto_end_minutes)
    previous = obj.status
    _apply(obj, changes)
    await _commit(db, f"Failed to {event.value.lower()} class")
    await db.refresh(obj)
    logger.info("Class %s: %s -> %s (%s)", obj.id, previous, obj.status, event.value)
    return _class_to_response(obj)


async def purge_class(db: AsyncSession, class_id: UUID) -> bool:
    """Permanently delete a soft-deleted class."""
    obj = await _get_row(db, class_id)
    if not obj:
        return False
    next_status(obj.status, LifecycleEvent.PURGE)
    await db.delete(obj)
    await _commit(db, "Failed to delete class")
    logger.info("Class %s purged", class_id)
    return True


async def import_classes(
    db: AsyncSession,
    rows: List[ClassImportRow],
    target_status: ImportTargetStatus = ImportTargetStatus.scheduled,
    replace: bool = False,
    now: Optional[datetime] = None,
) -> ClassImportResponse:
    """
    Create one class per spreadsheet row with the chosen status. All-or-nothing.
    replace=True soft-deletes every existing class first (recoverable from the admin board).
    """
    now = as_utc(now) or utcnow()
    replaced = 0
    try:
        if replace:
            result = await db.execute(
                update(LiveClass)
                .where(LiveClass.status != ClassStatus.deleted.value)
                .values(status=ClassStatus.deleted.value, updated_at=now)
            )
            replaced = result.rowcount or 0

        created: List[LiveClass] = []
        for row in rows:
            obj = LiveClass(
                title=links.clean_title(row.title),
                batchname=links.clean_title(row.batchname),
                thumbnail=row.thumbnail,
                status=ClassStatus.scheduled.value,
                autostart=False,
                autoend=True,
                autoendduration=settings.auto_end_minutes,
                **_stream_fields(row.streamlink),
            )
            if target_status in (ImportTargetStatus.live, ImportTargetStatus.completed):
                _apply(obj, transition_changes(obj, LifecycleEvent.START, now, settings.auto_end_minutes))
            if target_status == ImportTargetStatus.completed:
                _apply(obj, transition_changes(obj, LifecycleEvent.END, now, settings.auto_end_minutes))
            db.add(obj)
            created.append(obj)
        await db.flush()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to import classes")
        raise ServiceError("Failed to import classes", status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    for obj in created:
        await db.refresh(obj)
    logger.info(
        "Imported %d classes as %s (replaced %d)", len(created), target_status.value, replaced
    )
    return ClassImportResponse(
        created=len(created),
        replaced=replaced,
        classes=[_class_to_response(c) for c in created],
    )
