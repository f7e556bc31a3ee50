#!/usr/bin/env python
"""Initialize database tables and this month's badge definitions."""

import asyncio

from gitaura.core.config import settings
from gitaura.db.database import async_session_maker, init_db
from gitaura.services.badge_service import BadgeService
from gitaura.services.rank_service import current_month_year


async def init_monthly_badges() -> None:
    month_year = current_month_year()
    async with async_session_maker() as session:
        badges = await BadgeService(session).ensure_monthly_badges(month_year)
        print(f"Ensured {len(badges)} badges for {month_year}")


async def main() -> None:
    print(f"Initializing database: {settings.database_url}")

    await init_db()
    print("Database tables created")

    await init_monthly_badges()

    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
