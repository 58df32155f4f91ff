"""
Shared API Dependencies

Services are built once in the application lifespan and stored on
``app.state``; these dependencies hand them to the routers. Tests replace
them through ``app.dependency_overrides``.
"""

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notecanvas.core.database import get_session_factory
from notecanvas.core.exceptions import (
    NoteCanvasError,
    NoteNotFound,
    ProviderUnavailable,
    RateLimited,
    StorageFailure,
    Unauthenticated,
    UnknownImages,
)
from notecanvas.services.generation import ImageGenerationPipeline
from notecanvas.services.notes import NoteService
from notecanvas.services.storage import ObjectStorage


def get_pipeline(request: Request) -> ImageGenerationPipeline:
    return request.app.state.pipeline


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_note_service(request: Request) -> NoteService:
    return request.app.state.note_service


def get_background_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for background tasks (they outlive the request session)."""
    return get_session_factory()


def to_http_exception(error: NoteCanvasError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""
    if isinstance(error, Unauthenticated):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(error))
    if isinstance(error, NoteNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    if isinstance(error, RateLimited):
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(error))
    if isinstance(error, UnknownImages):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, StorageFailure | ProviderUnavailable):
        # 502 Bad Gateway: a backing service failed
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
