"""
Create the tables if they do not exist.

Run once before first start:
  python -m liveclass.db.init_db
"""
import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

import liveclass.auth.models  # noqa: F401 - register tables on Base.metadata
import liveclass.core.models  # noqa: F401
from liveclass.db.session import Base, engine


async def create_tables(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    await create_tables(engine)
    print("Tables ready:", ", ".join(sorted(Base.metadata.tables)))
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
