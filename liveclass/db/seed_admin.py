"""
Seed script to create (or reset) the admin account.

Run once (e.g. after init_db) with env set:
  ADMIN_EMAIL=admin@yourdomain.com
  ADMIN_PASSWORD=YourSecurePassword
"""
import asyncio

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.auth.models import AdminUser
from liveclass.auth.security import hash_password
from liveclass.core.config import settings
from liveclass.db.session import AsyncSessionLocal

DEFAULT_ADMIN_FULL_NAME = "Admin"


async def seed_admin(db: AsyncSession, email: str, password: str, full_name: str = DEFAULT_ADMIN_FULL_NAME) -> AdminUser:
    stmt = select(AdminUser).where(func.lower(AdminUser.email) == email.lower())
    result = await db.execute(stmt)
    admin = result.scalar_one_or_none()
    if not admin:
        admin = AdminUser(
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            status="ACTIVE",
        )
        db.add(admin)
        print("Created admin user:", email)
    else:
        admin.password_hash = hash_password(password)
        admin.status = "ACTIVE"
        print("Updated existing admin user:", email)
    await db.commit()
    await db.refresh(admin)
    return admin


async def main() -> None:
    if not settings.admin_email or not settings.admin_password:
        print("ADMIN_EMAIL / ADMIN_PASSWORD not set; nothing to do.")
        return
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db, settings.admin_email, settings.admin_password)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
