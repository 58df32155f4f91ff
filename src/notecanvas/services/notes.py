"""
Note Service

Note lifecycle operations that span the note rows and object storage:
attaching uploaded images on create/update, filling the default prompt for
empty notes, and releasing stored objects that are no longer referenced.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.core.exceptions import NoteNotFound, UnknownImages
from notecanvas.models import MAX_IMAGES_PER_NOTE, Note
from notecanvas.repositories.notes import NoteRepository, note_repository
from notecanvas.schemas.notes import NoteCreate, NoteUpdate
from notecanvas.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_NOTE_PROMPT = (
    "Enhance this real-estate photo to make it look bright, clean, modern and professional"
)


def default_prompt_for(content: str | None) -> str | None:
    """Directive used for generation when the note has no content."""
    if content and content.strip():
        return None
    return DEFAULT_NOTE_PROMPT


class NoteService:
    """
    Usage::

        service = NoteService(ObjectStorage())
        note = await service.create(session, "user-1", NoteCreate(title="Trip"))
    """

    def __init__(self, storage: ObjectStorage, notes: NoteRepository = note_repository) -> None:
        self._storage = storage
        self._notes = notes

    async def get(self, session: AsyncSession, owner_id: str, note_id: int) -> Note:
        note = await self._notes.get_owned(session, note_id, owner_id, refresh=True)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    async def create(self, session: AsyncSession, owner_id: str, data: NoteCreate) -> Note:
        """
        Create a note. image_ids beyond the cap are dropped.

        Raises:
            UnknownImages: An image id is not a stored object of the owner.
        """
        images = await self._resolve_images(session, owner_id, data.image_ids)
        note = Note(
            owner_id=owner_id,
            title=data.title,
            content=data.content,
            tags=data.tags,
            default_prompt=default_prompt_for(data.content),
        )
        note = await self._notes.add(session, note, images)
        logger.info("Created note %d for %s (%d image(s))", note.id, owner_id, len(images))
        return note

    async def update(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: int,
        data: NoteUpdate,
    ) -> Note:
        """
        Replace title, content and tags; replace images when image_ids is set.

        Raises:
            NoteNotFound: Note missing or owned by someone else.
            UnknownImages: An image id is not a stored object of the owner.
        """
        note = await self.get(session, owner_id, note_id)

        released: list[uuid.UUID] = []
        if data.image_ids is not None:
            images = await self._resolve_images(session, owner_id, data.image_ids)
            released = await self._notes.replace_images(session, note, images)

        note.title = data.title
        note.content = data.content
        note.tags = data.tags
        note.default_prompt = default_prompt_for(data.content)
        note = await self._notes.save(session, note)

        await self._storage.release(session, released)
        return note

    async def delete(self, session: AsyncSession, owner_id: str, note_id: int) -> None:
        """Delete a note and release stored objects no other note references."""
        note = await self.get(session, owner_id, note_id)
        object_ids = await self._notes.remove(session, note)
        released = await self._storage.release(session, object_ids)
        logger.info("Deleted note %d (%d object(s) released)", note_id, released)

    async def _resolve_images(
        self,
        session: AsyncSession,
        owner_id: str,
        image_ids: Sequence[uuid.UUID],
    ) -> list[tuple[uuid.UUID, str]]:
        # Keep order, drop duplicates, then apply the cap
        unique = list(dict.fromkeys(image_ids))[:MAX_IMAGES_PER_NOTE]
        owned = await self._storage.owned_ids(session, unique, owner_id)
        missing = [object_id for object_id in unique if object_id not in owned]
        if missing:
            raise UnknownImages(missing)
        return [(object_id, self._storage.url_for(object_id)) for object_id in unique]
