#!/usr/bin/env python
"""Recalculate leaderboard ranks once, outside the beat schedule.

Usage: recalculate_ranks.py [PARTITION ...]   (YYYY-MM or "global")
"""

import asyncio
import sys

from gitaura.db.database import async_session_maker
from gitaura.services.rank_service import GLOBAL_PARTITION, RankService, current_month_year


async def main(partitions: list[str]) -> None:
    partitions = partitions or [current_month_year(), GLOBAL_PARTITION]
    async with async_session_maker() as session:
        service = RankService(session)
        for partition in partitions:
            result = await service.recalculate(partition)
            print(
                f"{result.partition}: {result.total} ranked, "
                f"{result.changed} changed, {result.purged} purged"
            )


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
