"""
Availability — is a media free over a date range?

A media is busy when a live item books it inside a live, non-cancelled
campaign whose [start_date, end_date] overlaps the range (both ends
inclusive). Callers inside a write transaction pass `lock=True` so the
conflicting rows stay locked until commit.
"""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adspace.store import overlapping_items


async def is_media_free(
    db: AsyncSession,
    media_id: int,
    start: date,
    end: date,
    exclude_item_id: Optional[int] = None,
    lock: bool = False,
) -> bool:
    stmt = overlapping_items(media_id, start, end, exclude_item_id)
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.limit(1))
    return result.scalars().first() is None

