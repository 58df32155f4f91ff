"""
Generation Record Repository

Insert-only audit trail of generation attempts and the daily count used
for quota enforcement.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.models import GenerationRecord
from notecanvas.repositories.base import BaseRepository


class GenerationRepository(BaseRepository[GenerationRecord]):
    """Repository for GenerationRecord rows."""

    def __init__(self) -> None:
        super().__init__(GenerationRecord)

    async def count_for_day(self, session: AsyncSession, owner_id: str, day: date) -> int:
        """Number of generation attempts by owner_id on day."""
        result = await session.execute(
            select(func.count())
            .select_from(GenerationRecord)
            .where(GenerationRecord.owner_id == owner_id, GenerationRecord.day == day)
        )
        return int(result.scalar_one())

    async def record(
        self,
        session: AsyncSession,
        *,
        owner_id: str,
        note_id: int,
        day: date,
        prompt: str,
        image_url: str,
        success: bool,
    ) -> GenerationRecord:
        """Append one generation record (committed)."""
        return await self.create(
            session,
            {
                "owner_id": owner_id,
                "note_id": note_id,
                "day": day,
                "prompt": prompt,
                "image_url": image_url,
                "success": success,
            },
        )


generation_repository = GenerationRepository()
