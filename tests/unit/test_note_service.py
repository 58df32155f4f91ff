"""
Note Service Unit Tests

Create/update/delete with uploaded images, the default prompt for empty
notes and release of stored objects.
"""

from __future__ import annotations

import uuid

import pytest

from notecanvas.core.exceptions import NoteNotFound, UnknownImages
from notecanvas.schemas.notes import NoteCreate, NoteUpdate
from notecanvas.services.notes import DEFAULT_NOTE_PROMPT, NoteService, default_prompt_for

OWNER = "user-1"


@pytest.fixture
def service(storage) -> NoteService:
    return NoteService(storage)


async def upload(session, storage, n: int, owner_id: str = OWNER) -> list[uuid.UUID]:
    return [
        await storage.store(session, f"img-{i}".encode(), "image/png", owner_id) for i in range(n)
    ]


def test_default_prompt_only_for_empty_content():
    assert default_prompt_for(None) == DEFAULT_NOTE_PROMPT
    assert default_prompt_for("   ") == DEFAULT_NOTE_PROMPT
    assert default_prompt_for("Some text") is None


class TestCreate:
    @pytest.mark.asyncio
    async def test_fields_and_default_prompt(self, session, service) -> None:
        note = await service.create(
            session, OWNER, NoteCreate(title="Kitchen", tags=[" home ", "", "reno"])
        )

        assert note.owner_id == OWNER
        assert note.tags == ["home", "reno"]
        assert note.default_prompt == DEFAULT_NOTE_PROMPT
        assert note.has_images is False
        assert note.created_at is not None

    @pytest.mark.asyncio
    async def test_images_capped_at_three(self, session, storage, service) -> None:
        object_ids = await upload(session, storage, 5)

        note = await service.create(session, OWNER, NoteCreate(title="x", image_ids=object_ids))

        assert note.image_ids == object_ids[:3]
        assert note.image_urls == [f"http://testserver/api/v1/storage/{i}" for i in object_ids[:3]]

    @pytest.mark.asyncio
    async def test_duplicate_image_ids_collapse(self, session, storage, service) -> None:
        (object_id,) = await upload(session, storage, 1)

        note = await service.create(
            session, OWNER, NoteCreate(image_ids=[object_id, object_id])
        )

        assert note.image_ids == [object_id]

    @pytest.mark.asyncio
    async def test_unknown_image_rejected(self, session, service) -> None:
        with pytest.raises(UnknownImages):
            await service.create(session, OWNER, NoteCreate(image_ids=[uuid.uuid4()]))

    @pytest.mark.asyncio
    async def test_other_owners_image_rejected(self, session, storage, service) -> None:
        (object_id,) = await upload(session, storage, 1, owner_id="user-2")

        with pytest.raises(UnknownImages) as exc_info:
            await service.create(session, OWNER, NoteCreate(image_ids=[object_id]))

        assert exc_info.value.object_ids == [object_id]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_replaces_fields_and_keeps_images(self, session, storage, service) -> None:
        object_ids = await upload(session, storage, 1)
        note = await service.create(session, OWNER, NoteCreate(title="old", image_ids=object_ids))

        updated = await service.update(
            session, OWNER, note.id, NoteUpdate(title="new", content="text", tags=["a"])
        )

        assert updated.title == "new"
        assert updated.content == "text"
        assert updated.tags == ["a"]
        assert updated.default_prompt is None
        assert updated.image_ids == object_ids

    @pytest.mark.asyncio
    async def test_replacing_images_releases_dropped(self, session, storage, service) -> None:
        first, second, third = await upload(session, storage, 3)
        note = await service.create(session, OWNER, NoteCreate(image_ids=[first, second]))

        updated = await service.update(
            session, OWNER, note.id, NoteUpdate(image_ids=[second, third])
        )

        assert updated.image_ids == [second, third]
        assert await storage.owned_ids(session, [first, second, third], OWNER) == {second, third}

    @pytest.mark.asyncio
    async def test_foreign_note(self, session, service) -> None:
        note = await service.create(session, OWNER, NoteCreate(title="mine"))

        with pytest.raises(NoteNotFound):
            await service.update(session, "intruder", note.id, NoteUpdate(title="hacked"))

    @pytest.mark.asyncio
    async def test_other_owners_image_rejected(self, session, storage, service) -> None:
        (foreign,) = await upload(session, storage, 1, owner_id="user-2")
        note = await service.create(session, OWNER, NoteCreate(title="mine"))

        with pytest.raises(UnknownImages):
            await service.update(session, OWNER, note.id, NoteUpdate(image_ids=[foreign]))

    @pytest.mark.asyncio
    async def test_keeping_same_images_releases_nothing(self, session, storage, service) -> None:
        object_ids = await upload(session, storage, 2)
        note = await service.create(session, OWNER, NoteCreate(image_ids=object_ids))

        await service.update(session, OWNER, note.id, NoteUpdate(image_ids=object_ids[::-1]))

        assert await storage.owned_ids(session, object_ids, OWNER) == set(object_ids)


class TestDelete:
    @pytest.mark.asyncio
    async def test_releases_stored_objects(self, session, storage, service) -> None:
        object_ids = await upload(session, storage, 2)
        note = await service.create(session, OWNER, NoteCreate(image_ids=object_ids))

        await service.delete(session, OWNER, note.id)

        with pytest.raises(NoteNotFound):
            await service.get(session, OWNER, note.id)
        assert await storage.owned_ids(session, object_ids, OWNER) == set()

    @pytest.mark.asyncio
    async def test_shared_image_survives_deleting_one_note(self, session, storage, service) -> None:
        (shared,) = await upload(session, storage, 1)
        kept = await service.create(session, OWNER, NoteCreate(title="kept", image_ids=[shared]))
        dropped = await service.create(session, OWNER, NoteCreate(title="gone", image_ids=[shared]))

        await service.delete(session, OWNER, dropped.id)

        assert await storage.owned_ids(session, [shared], OWNER) == {shared}
        assert (await service.get(session, OWNER, kept.id)).image_ids == [shared]

        await service.delete(session, OWNER, kept.id)

        assert await storage.owned_ids(session, [shared], OWNER) == set()

    @pytest.mark.asyncio
    async def test_missing_note(self, session, service) -> None:
        with pytest.raises(NoteNotFound):
            await service.delete(session, OWNER, 404)
