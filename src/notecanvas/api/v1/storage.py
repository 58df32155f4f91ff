"""
Storage API Router

Upload images and serve stored objects back by id.

Endpoints:
    POST /             Upload an image (multipart), returns its object id and URL.
    GET  /{object_id}  Raw bytes with the stored MIME type.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.api.deps import get_storage, to_http_exception
from notecanvas.core.database import get_db
from notecanvas.core.exceptions import StorageFailure
from notecanvas.core.security import get_current_owner
from notecanvas.schemas.images import StoredObjectResponse
from notecanvas.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@router.post("/", response_model=StoredObjectResponse, status_code=status.HTTP_201_CREATED)
async def upload_object(
    file: UploadFile,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> StoredObjectResponse:
    """Store an uploaded image owned by the caller; attach it to their notes by object id."""
    mime_type = file.content_type or ""
    if not mime_type.startswith("image/"):
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported content type: '{mime_type}'. Images only.",
        )

    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=422, detail="Empty upload")
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload exceeds 10 MB")

    try:
        object_id = await storage.store(db, raw, mime_type, owner_id)
    except StorageFailure as e:
        raise to_http_exception(e) from e

    logger.info("Upload by %s stored as %s", owner_id, object_id)
    return StoredObjectResponse(
        object_id=object_id,
        url=storage.url_for(object_id),
        mime_type=mime_type,
        size=len(raw),
    )


@router.get("/{object_id}", response_class=Response)
async def read_object(
    object_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> Response:
    """Serve stored bytes. Public: durable URLs are embedded as image sources."""
    obj = await storage.get(db, object_id)
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Object not found")
    return Response(
        content=obj.data,
        media_type=obj.mime_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
