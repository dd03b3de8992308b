import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid

from liveclass.db.session import Base


class AdminUser(Base):
    """Administrator account. Student views are unauthenticated, so this is the only user table."""

    __tablename__ = "admin_users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False, default="")
    password_hash = Column(Text, nullable=False)
    # ACTIVE | INACTIVE
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
