"""
Note Repository

Data access layer for notes and their append-only image rows.
Every read is scoped to the owning user.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.models import MAX_IMAGES_PER_NOTE, Note, NoteImage
from notecanvas.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note entities.

    Inherits standard CRUD from BaseRepository and adds:
        - get_owned / list_for_owner: owner-scoped reads
        - append_image: insert an image row and evict the oldest beyond the cap
        - replace_images: swap the full image set (note edits)
    """

    def __init__(self) -> None:
        super().__init__(Note)

    async def get_owned(
        self,
        session: AsyncSession,
        note_id: int,
        owner_id: str,
        *,
        refresh: bool = False,
    ) -> Note | None:
        """
        Get a note owned by owner_id. Returns None for missing or foreign notes.

        Args:
            refresh: Reload attributes and images even if the note is already
                in the session identity map.
        """
        stmt = select(Note).where(Note.id == note_id, Note.owner_id == owner_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_for_owner(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        query: str = "",
        tag: str | None = None,
        with_images: bool = False,
    ) -> list[Note]:
        """
        List an owner's notes, newest first.

        Args:
            query: Case-insensitive substring matched against title and content.
            tag: Exact tag the note must carry.
            with_images: Keep only notes that have at least one image.
        """
        stmt = select(Note).where(Note.owner_id == owner_id)
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(or_(Note.title.ilike(pattern), Note.content.ilike(pattern)))
        if with_images:
            stmt = stmt.where(Note.images.any())
        stmt = stmt.order_by(Note.id.desc())

        result = await session.execute(stmt)
        notes = list(result.scalars().all())

        # JSON containment is dialect specific; tags are few, filter here
        if tag:
            notes = [note for note in notes if tag in (note.tags or [])]
        return notes

    async def all_tags(self, session: AsyncSession, owner_id: str) -> list[str]:
        """Sorted unique tags across the owner's notes."""
        result = await session.execute(select(Note.tags).where(Note.owner_id == owner_id))
        tags: set[str] = set()
        for row_tags in result.scalars().all():
            tags.update(row_tags or [])
        return sorted(tags)

    async def add(
        self,
        session: AsyncSession,
        note: Note,
        images: Sequence[tuple[uuid.UUID, str]] = (),
    ) -> Note:
        """Insert a note with its initial images (already capped by the caller)."""
        note.images = [NoteImage(object_id=object_id, url=url) for object_id, url in images]
        session.add(note)
        await session.commit()
        return await self._reload(session, note.id)

    async def save(self, session: AsyncSession, note: Note) -> Note:
        """Commit pending attribute changes on a note and reload it."""
        await session.commit()
        return await self._reload(session, note.id)

    async def replace_images(
        self,
        session: AsyncSession,
        note: Note,
        images: Sequence[tuple[uuid.UUID, str]],
    ) -> list[uuid.UUID]:
        """
        Replace the image set of a note (not committed).

        Returns:
            Object ids that are no longer attached (release candidates).
        """
        keep = {object_id for object_id, _ in images}
        removed = [image.object_id for image in note.images if image.object_id not in keep]
        note.images = [NoteImage(object_id=object_id, url=url) for object_id, url in images]
        return removed

    async def append_image(
        self,
        session: AsyncSession,
        note_id: int,
        object_id: uuid.UUID,
        url: str,
        generated_prompt: str,
        max_images: int = MAX_IMAGES_PER_NOTE,
    ) -> list[uuid.UUID]:
        """
        Attach a generated image and record its prompt in one transaction.

        The new row is inserted first, then every row beyond the newest
        max_images is deleted (oldest first). Concurrent appends each insert
        their own row and trim to the same newest set, so no append is lost
        to a read-modify-write race.

        Returns:
            Object ids of evicted images, to be released from storage.
        """
        session.add(NoteImage(note_id=note_id, object_id=object_id, url=url))
        await session.flush()

        overflow = await session.execute(
            select(NoteImage.id, NoteImage.object_id)
            .where(NoteImage.note_id == note_id)
            .order_by(NoteImage.id.desc())
            .offset(max_images)
        )
        evicted = overflow.all()
        if evicted:
            await session.execute(
                delete(NoteImage).where(NoteImage.id.in_([row.id for row in evicted]))
            )
            logger.info(
                "Note %d at image cap, evicted %d oldest image(s)", note_id, len(evicted)
            )

        await session.execute(
            update(Note).where(Note.id == note_id).values(generated_prompt=generated_prompt)
        )
        await session.commit()
        return [row.object_id for row in evicted]

    async def set_generated_prompt(
        self,
        session: AsyncSession,
        note_id: int,
        generated_prompt: str | None,
    ) -> None:
        """Update only the generated_prompt status field."""
        await session.execute(
            update(Note).where(Note.id == note_id).values(generated_prompt=generated_prompt)
        )
        await session.commit()

    async def remove(self, session: AsyncSession, note: Note) -> list[uuid.UUID]:
        """
        Delete a note and its image rows.

        Returns:
            Object ids of the note's images (release candidates).
        """
        object_ids = list(note.image_ids)
        await self.delete(session, note)
        return object_ids

    async def _reload(self, session: AsyncSession, note_id: int) -> Note:
        result = await session.execute(
            select(Note).where(Note.id == note_id).execution_options(populate_existing=True)
        )
        return result.scalars().one()


# Module-level instance for convenience imports
note_repository = NoteRepository()
