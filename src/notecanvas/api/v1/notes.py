"""
Notes API Router

REST endpoints for note CRUD and image generation on a note.

Endpoints:
    POST   /                               Create a note.
    GET    /                               List notes (q, tag, with_images filters).
    GET    /tags                           Sorted unique tags.
    GET    /{id}                           Read a note.
    PUT    /{id}                           Replace a note's fields.
    DELETE /{id}                           Delete a note (204).
    POST   /{id}/images/generate           Generate an image in-request.
    POST   /{id}/images/generate/schedule  Generate in the background (202).
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notecanvas.api.deps import (
    get_background_session_factory,
    get_note_service,
    get_pipeline,
    to_http_exception,
)
from notecanvas.core.database import get_db
from notecanvas.core.exceptions import NoteCanvasError
from notecanvas.core.security import get_current_owner
from notecanvas.repositories.notes import note_repository
from notecanvas.schemas.images import GenerationRequest, GenerationResult, ScheduledGeneration
from notecanvas.schemas.notes import NoteCreate, NoteRead, NoteUpdate
from notecanvas.services.generation import (
    ImageGenerationPipeline,
    pending_marker,
    run_scheduled_generation,
)
from notecanvas.services.notes import NoteService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: NoteService = Depends(get_note_service),
):
    """Create a note. Only the first 3 image_ids are attached."""
    try:
        return await service.create(db, owner_id, note)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e


@router.get("/", response_model=list[NoteRead])
async def list_notes(
    q: str = Query(default="", description="Case-insensitive title/content match"),
    tag: str | None = Query(default=None, description="Exact tag filter"),
    with_images: bool = Query(default=False, description="Only notes with images"),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's notes, newest first."""
    return await note_repository.list_for_owner(
        db, owner_id, query=q, tag=tag, with_images=with_images
    )


@router.get("/tags", response_model=list[str])
async def list_tags(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    return await note_repository.all_tags(db, owner_id)


@router.get("/{note_id}", response_model=NoteRead)
async def read_note(
    note_id: int,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: NoteService = Depends(get_note_service),
):
    """Retrieve a single note by ID."""
    try:
        return await service.get(db, owner_id, note_id)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e


@router.put("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: int,
    note: NoteUpdate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: NoteService = Depends(get_note_service),
):
    """
    Replace title, content and tags.

    Images are replaced only when image_ids is present; stored objects of
    dropped images are released.
    """
    try:
        return await service.update(db, owner_id, note_id, note)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: int,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: NoteService = Depends(get_note_service),
) -> Response:
    try:
        await service.delete(db, owner_id, note_id)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Image generation
# ---------------------------------------------------------------------------


@router.post(
    "/{note_id}/images/generate",
    response_model=GenerationResult,
    summary="Generate an image for a note",
    responses={
        404: {"description": "Note not found"},
        429: {"description": "Daily generation limit reached"},
        502: {"description": "Image could not be stored"},
    },
)
async def generate_image(
    note_id: int,
    request: GenerationRequest | None = None,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    pipeline: ImageGenerationPipeline = Depends(get_pipeline),
) -> GenerationResult:
    """
    Generate an image from the note's title and content and attach it.

    Graceful Degradation:
        When the image provider fails (no credential, no credits, model
        offline, malformed response), a placeholder image is rendered
        locally and stored instead. The response then has
        ``is_fallback=True`` and a prompt prefixed with ``[Fallback: <reason>]``.

    A note keeps at most 3 images; the oldest is evicted first.
    """
    request = request or GenerationRequest()
    logger.info("Generate request: note=%d style=%s", note_id, request.style)
    try:
        return await pipeline.generate(db, owner_id, note_id, request)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{note_id}/images/generate/schedule",
    response_model=ScheduledGeneration,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Schedule image generation in the background",
)
async def schedule_image_generation(
    note_id: int,
    background_tasks: BackgroundTasks,
    request: GenerationRequest | None = None,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    pipeline: ImageGenerationPipeline = Depends(get_pipeline),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_background_session_factory),
) -> ScheduledGeneration:
    """
    Validate ownership and quota, mark the note as generating and return 202.

    The pipeline runs after the response with its own session. Fire and
    forget: no retry, no cancellation. Poll the note for the result.
    """
    request = request or GenerationRequest()
    try:
        await pipeline.get_note(db, owner_id, note_id)
        await pipeline.ensure_quota(db, owner_id)
    except NoteCanvasError as e:
        raise to_http_exception(e) from e

    await note_repository.set_generated_prompt(db, note_id, pending_marker(request.style))
    background_tasks.add_task(
        run_scheduled_generation, pipeline, session_factory, owner_id, note_id, request
    )

    return ScheduledGeneration(
        note_id=note_id,
        message=f"Image generation scheduled for note {note_id}.",
    )
