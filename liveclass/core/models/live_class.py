"""Live class rows shown on the student dashboard and managed from the admin panel."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text, Uuid

from liveclass.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveClass(Base):
    """A class stream. Soft delete via status='deleted'; purge removes the row."""

    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'live', 'completed', 'deleted')",
            name="ck_classes_status",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False, default="")
    batchname = Column(String(255), nullable=False, default="")
    thumbnail = Column(Text, nullable=False, default="")
    # Link as entered by the admin; m3u8link/defaultquality are derived from it on write
    streamlink = Column(Text, nullable=False, default="")
    m3u8link = Column(Text, nullable=False, default="")
    defaultquality = Column(Integer, nullable=False, default=3)
    # scheduled | live | completed | deleted
    status = Column(String(20), nullable=False, default="scheduled", index=True)
    starttime = Column(DateTime(timezone=True), nullable=True)
    endtime = Column(DateTime(timezone=True), nullable=True)
    scheduledstarttime = Column(DateTime(timezone=True), nullable=True)
    autostart = Column(Boolean, nullable=False, default=False)
    autoend = Column(Boolean, nullable=False, default=True)
    autoendduration = Column(Integer, nullable=False, default=105)  # minutes
    # Only meaningful while status='live'
    autoendtime = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
