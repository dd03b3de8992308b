import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.auth.models import AdminUser
from liveclass.auth.schemas import AdminInfo, LoginRequest, LoginResponse
from liveclass.auth.security import create_access_token, verify_password
from liveclass.core.config import settings
from liveclass.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


async def login_admin(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find admin by email (case-insensitive)
    stmt = select(AdminUser).where(func.lower(AdminUser.email) == func.lower(payload.email))
    result = await db.execute(stmt)
    admin: Optional[AdminUser] = result.scalar_one_or_none()
    if not admin:
        logger.info("Login failed: unknown email %s", payload.email)
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash
    if not verify_password(payload.password, admin.password_hash):
        logger.info("Login failed: bad password for %s", payload.email)
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Check account status
    if admin.status != "ACTIVE":
        raise ServiceError("Admin account is inactive", status.HTTP_403_FORBIDDEN)

    issued_at = datetime.now(timezone.utc)
    access_token = create_access_token(
        subject={
            "sub": str(admin.id),
            "email": admin.email,
            "iat": int(issued_at.timestamp()),
        }
    )
    logger.info("Admin %s logged in", admin.email)

    return LoginResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
        admin=AdminInfo(id=admin.id, name=admin.full_name, email=admin.email),
        issued_at=issued_at,
    )


async def get_admin_info(db: AsyncSession, admin_id) -> Optional[AdminInfo]:
    admin = await db.get(AdminUser, admin_id)
    if not admin:
        return None
    return AdminInfo(id=admin.id, name=admin.full_name, email=admin.email)
