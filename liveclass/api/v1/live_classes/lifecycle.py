"""
Class lifecycle: transition table and time-window classifier.

Every status change (manual start/end, auto-start, auto-end, soft delete, recover, purge)
goes through TRANSITIONS. classify() buckets records into live / upcoming / completed /
deleted for a single injected `now` and reports the promotions (auto-start, auto-end)
that must be persisted. It never mutates the records it is given.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from liveclass.core.enums import Bucket, ClassStatus, LifecycleEvent
from liveclass.core.exceptions import InvalidTransition

DEFAULT_AUTO_END_MINUTES = 105

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)

# (current status, event) -> next status; None means the row is destroyed.
TRANSITIONS: Dict[Tuple[ClassStatus, LifecycleEvent], Optional[ClassStatus]] = {
    (ClassStatus.scheduled, LifecycleEvent.START): ClassStatus.live,
    (ClassStatus.scheduled, LifecycleEvent.AUTO_START): ClassStatus.live,
    (ClassStatus.scheduled, LifecycleEvent.DELETE): ClassStatus.deleted,
    (ClassStatus.live, LifecycleEvent.END): ClassStatus.completed,
    (ClassStatus.live, LifecycleEvent.AUTO_END): ClassStatus.completed,
    (ClassStatus.live, LifecycleEvent.DELETE): ClassStatus.deleted,
    (ClassStatus.completed, LifecycleEvent.DELETE): ClassStatus.deleted,
    (ClassStatus.deleted, LifecycleEvent.RECOVER): ClassStatus.scheduled,
    (ClassStatus.deleted, LifecycleEvent.PURGE): None,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime. Naive values (e.g. read back from SQLite) are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_status(current: str, event: LifecycleEvent) -> Optional[ClassStatus]:
    key = (ClassStatus(current), event)
    if key not in TRANSITIONS:
        raise InvalidTransition(str(ClassStatus(current).value), event.value)
    return TRANSITIONS[key]


def can_transition(current: str, event: LifecycleEvent) -> bool:
    return (ClassStatus(current), event) in TRANSITIONS


def auto_end_at(record: Any, starttime: datetime, auto_end_minutes: int) -> Optional[datetime]:
    """starttime + the record's auto-end duration, or None when auto-end is off."""
    if not getattr(record, "autoend", True):
        return None
    minutes = getattr(record, "autoendduration", None) or auto_end_minutes
    return starttime + timedelta(minutes=minutes)


def transition_changes(
    record: Any,
    event: LifecycleEvent,
    now: datetime,
    auto_end_minutes: int = DEFAULT_AUTO_END_MINUTES,
) -> Dict[str, Any]:
    """Field updates for applying `event` to `record`. Raises InvalidTransition if not allowed."""
    target = next_status(record.status, event)
    now = as_utc(now)

    if event == LifecycleEvent.START:
        return {
            "status": target.value,
            "starttime": now,
            "endtime": None,
            "autoendtime": auto_end_at(record, now, auto_end_minutes),
        }
    if event == LifecycleEvent.AUTO_START:
        start = as_utc(record.scheduledstarttime) or now
        return {
            "status": target.value,
            "starttime": start,
            "endtime": None,
            "autoendtime": auto_end_at(record, start, auto_end_minutes),
        }
    if event == LifecycleEvent.END:
        return {"status": target.value, "endtime": now}
    if event == LifecycleEvent.AUTO_END:
        return {"status": target.value, "endtime": as_utc(record.autoendtime) or now}
    if event == LifecycleEvent.DELETE:
        return {"status": target.value}
    if event == LifecycleEvent.RECOVER:
        return {
            "status": target.value,
            "starttime": None,
            "endtime": None,
            "autoendtime": None,
        }
    # PURGE: the caller deletes the row
    return {}


@dataclass
class Promotion:
    """Automatic transition found by the classifier, to be persisted by the caller."""

    record_id: Any
    events: List[LifecycleEvent]
    changes: Dict[str, Any]


@dataclass
class Classification:
    live: List[Any] = field(default_factory=list)
    upcoming: List[Any] = field(default_factory=list)
    completed: List[Any] = field(default_factory=list)
    deleted: List[Any] = field(default_factory=list)
    promotions: List[Promotion] = field(default_factory=list)

    def bucket(self, name: Bucket) -> List[Any]:
        return getattr(self, Bucket(name).value)

    def bucket_of(self, record_id: Any) -> Optional[Bucket]:
        for name in Bucket:
            if any(r.id == record_id for r in self.bucket(name)):
                return name
        return None


def _auto_promotion(record: Any, now: datetime, auto_end_minutes: int) -> Optional[Promotion]:
    status = record.status
    if status == ClassStatus.scheduled.value:
        scheduled = as_utc(record.scheduledstarttime)
        if scheduled is None or scheduled > now or not record.autostart:
            return None
        changes = transition_changes(record, LifecycleEvent.AUTO_START, now, auto_end_minutes)
        events = [LifecycleEvent.AUTO_START]
        ends_at = changes["autoendtime"]
        if ends_at is not None and ends_at <= now:
            # Started so long ago that it has already run its full duration
            next_status(changes["status"], LifecycleEvent.AUTO_END)
            changes.update(status=ClassStatus.completed.value, endtime=ends_at)
            events.append(LifecycleEvent.AUTO_END)
        return Promotion(record_id=record.id, events=events, changes=changes)

    if status == ClassStatus.live.value:
        ends_at = as_utc(record.autoendtime)
        if ends_at is None or ends_at > now:
            return None
        changes = transition_changes(record, LifecycleEvent.AUTO_END, now, auto_end_minutes)
        return Promotion(record_id=record.id, events=[LifecycleEvent.AUTO_END], changes=changes)

    return None


def _effective(record: Any, changes: Dict[str, Any], name: str) -> Optional[datetime]:
    if name in changes:
        return changes[name]
    return as_utc(getattr(record, name, None))


def _bucket_for_status(status: str) -> Bucket:
    if status == ClassStatus.deleted.value:
        return Bucket.deleted
    if status == ClassStatus.live.value:
        return Bucket.live
    if status == ClassStatus.completed.value:
        return Bucket.completed
    return Bucket.upcoming


def classify(
    records: Iterable[Any],
    now: datetime,
    auto_end_minutes: int = DEFAULT_AUTO_END_MINUTES,
) -> Classification:
    """
    Partition records into live / upcoming / completed / deleted as of `now`.

    Scheduled records whose start time has passed and that have autostart set are treated
    as live and reported as AUTO_START promotions; live records past their autoendtime are
    treated as completed and reported as AUTO_END promotions. A scheduled record whose time
    has passed without autostart stays upcoming until an admin starts it.
    """
    now = as_utc(now)
    result = Classification()
    entries: Dict[Bucket, List[Tuple[Any, Dict[str, Any]]]] = {b: [] for b in Bucket}

    for record in records:
        if record.status == ClassStatus.deleted.value:
            entries[Bucket.deleted].append((record, {}))
            continue
        promotion = _auto_promotion(record, now, auto_end_minutes)
        changes: Dict[str, Any] = {}
        status = record.status
        if promotion is not None:
            result.promotions.append(promotion)
            changes = promotion.changes
            status = changes["status"]
        entries[_bucket_for_status(status)].append((record, changes))

    def _start(entry):
        return _effective(entry[0], entry[1], "starttime")

    def _scheduled(entry):
        return _effective(entry[0], entry[1], "scheduledstarttime")

    def _ended(entry):
        return _effective(entry[0], entry[1], "endtime") or _effective(entry[0], entry[1], "autoendtime")

    live = sorted(
        entries[Bucket.live],
        key=lambda e: (_start(e) is not None, _start(e) or _EPOCH_MIN),
        reverse=True,
    )
    upcoming = sorted(
        entries[Bucket.upcoming],
        key=lambda e: (_scheduled(e) is None, _scheduled(e) or _EPOCH_MIN),
    )
    completed = sorted(
        entries[Bucket.completed],
        key=lambda e: (_ended(e) is not None, _ended(e) or _EPOCH_MIN),
        reverse=True,
    )

    result.live = [r for r, _ in live]
    result.upcoming = [r for r, _ in upcoming]
    result.completed = [r for r, _ in completed]
    result.deleted = [r for r, _ in entries[Bucket.deleted]]
    return result
