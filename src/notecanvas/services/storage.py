"""
Object Storage Service

Stores binary objects (uploaded and generated images) and hands out durable
URLs for them. Generated images arrive either as base64 data URLs from the
image provider or as HTTP URLs (static placeholder) that are fetched first.

Loading an image reference raises ImagePayloadError, which callers map to
a fallback. Write and URL failures surface as StorageFailure: there is no
fallback below storage.
"""

from __future__ import annotations

import base64
import binascii
import logging
import uuid
from collections.abc import Sequence
from urllib.parse import unquote_to_bytes

import httpx
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.core.config import settings
from notecanvas.core.exceptions import GENERIC_ERROR, ImagePayloadError, StorageFailure
from notecanvas.models import NoteImage, StoredObject

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"
FETCH_TIMEOUT_SECONDS = 30.0


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Decode a ``data:`` URL into (bytes, mime_type).

    Raises:
        ValueError: If the URL is not a well-formed data URL.
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")

    header, payload = data_url[5:].split(",", 1)
    parts = header.split(";")
    mime_type = parts[0] or DEFAULT_MIME_TYPE

    if "base64" in parts[1:]:
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)

    if not data:
        raise ValueError("Empty data URL payload")
    return data, mime_type
class ObjectStorage:
    """
    Database-backed object store.

    Objects belong to the user who uploaded or generated them. Notes
    reference objects through ``note_images`` rows; an object is only
    released once no row references it any more.

    Usage::

        storage = ObjectStorage(http_client)
        data, mime_type = await storage.load_image("data:image/png;base64,...")
        object_id, url = await storage.store_image(session, data, mime_type, "user-1")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        public_base_url: str | None = None,
    ) -> None:
        """
        Args:
            http_client: Shared client used to fetch HTTP image URLs. A
                short-lived client is opened per fetch when omitted.
            public_base_url: Prefix of durable object URLs (default from config).
        """
        self._http_client = http_client
        self._public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    # ------------------------------------------------------------------
    # Primitive operations
    # ------------------------------------------------------------------

    async def store(
        self, session: AsyncSession, data: bytes, mime_type: str, owner_id: str
    ) -> uuid.UUID:
        """Persist bytes for owner_id and return the new object id (committed)."""
        obj = StoredObject(
            id=uuid.uuid4(), owner_id=owner_id, mime_type=mime_type, size=len(data), data=data
        )
        try:
            session.add(obj)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageFailure(f"Object store rejected write: {e}") from e

        logger.info("Stored object %s for %s (%s, %d bytes)", obj.id, owner_id, mime_type, len(data))
        return obj.id

    async def get(self, session: AsyncSession, object_id: uuid.UUID) -> StoredObject | None:
        return await session.get(StoredObject, object_id)

    async def get_url(self, session: AsyncSession, object_id: uuid.UUID) -> str | None:
        """Durable URL for an object, or None if it does not exist."""
        obj = await self.get(session, object_id)
        if obj is None:
            return None
        return self.url_for(object_id)

    def url_for(self, object_id: uuid.UUID) -> str:
        return f"{self._public_base_url}/api/v1/storage/{object_id}"

    async def owned_ids(
        self, session: AsyncSession, object_ids: Sequence[uuid.UUID], owner_id: str
    ) -> set[uuid.UUID]:
        """Subset of object_ids that exist and belong to owner_id."""
        if not object_ids:
            return set()
        result = await session.execute(
            select(StoredObject.id).where(
                StoredObject.id.in_(list(object_ids)),
                StoredObject.owner_id == owner_id,
            )
        )
        return set(result.scalars().all())

    async def release(self, session: AsyncSession, object_ids: Sequence[uuid.UUID]) -> int:
        """
        Delete objects that no note image references any more.

        Call after the referencing rows were removed and committed. Ids still
        referenced by another note, and missing ids, are left alone.

        Returns:
            Number of objects deleted.
        """
        if not object_ids:
            return 0
        statement = (
            delete(StoredObject)
            .where(
                StoredObject.id.in_(list(object_ids)),
                StoredObject.id.not_in(select(NoteImage.object_id)),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(statement)
        await session.commit()

        released = result.rowcount or 0
        logger.info("Released %d of %d stored object(s)", released, len(object_ids))
        return released

    # ------------------------------------------------------------------
    # Image helpers
    # ------------------------------------------------------------------

    async def store_image(
        self, session: AsyncSession, data: bytes, mime_type: str, owner_id: str
    ) -> tuple[uuid.UUID, str]:
        """
        Store image bytes and resolve the durable URL.

        Returns:
            Tuple of (object_id, durable_url).

        Raises:
            StorageFailure: On write or URL resolution failure.
        """
        object_id = await self.store(session, data, mime_type, owner_id)

        url = await self.get_url(session, object_id)
        if url is None:
            raise StorageFailure(f"No URL for stored object {object_id}")
        return object_id, url

    async def load_image(self, image: str) -> tuple[bytes, str]:
        """
        Turn a data URL or HTTP(S) URL into (bytes, mime_type).

        Raises:
            ImagePayloadError: Undecodable data URL, unsupported scheme,
                failed fetch or empty body.
        """
        if image.startswith("data:"):
            try:
                return decode_data_url(image)
            except ValueError as e:
                raise ImagePayloadError(f"Undecodable image data: {e}") from e

        if not image.startswith(("http://", "https://")):
            raise ImagePayloadError(f"Unsupported image reference: {image[:80]!r}")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(image, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS) as client:
                    response = await client.get(image, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImagePayloadError(f"Failed to fetch image: {e}", reason=GENERIC_ERROR) from e

        mime_type = response.headers.get("content-type", DEFAULT_MIME_TYPE).split(";")[0]
        if not response.content:
            raise ImagePayloadError(f"Empty image body from {image[:80]}")
        return response.content, mime_type
