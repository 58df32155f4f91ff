"""
Image Generation Pipeline

Orchestrates one generation request for a note:

    note lookup → quota check → prompt building → provider call
    → (fallback image on provider failure) → storage write → note update
    → generation record

Provider failures, including a provider image that cannot be decoded or
fetched, are converted into explicit result values and never reach the
caller: the chain bottoms out in the locally rendered fallback image.
Storage failures are fatal for the request and leave the note unmodified.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.core.exceptions import (
    ImagePayloadError,
    NoteNotFound,
    ProviderUnavailable,
    RateLimited,
    StorageFailure,
)
from notecanvas.models import Note
from notecanvas.repositories.generations import GenerationRepository, generation_repository
from notecanvas.repositories.notes import NoteRepository, note_repository
from notecanvas.schemas.images import GenerationRequest, GenerationResult, QuotaStatus
from notecanvas.services.fallback import FallbackGenerator
from notecanvas.services.prompts import PromptBuilder, PromptContext, select_aspect_ratio
from notecanvas.services.providers import ImageProvider
from notecanvas.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

PENDING_PREFIX = "[Generating]"


class GenerationStage(str, Enum):
    IDLE = "idle"
    PROMPT_BUILDING = "prompt_building"
    PROVIDER_CALL = "provider_call"
    FALLBACK = "fallback"
    STORAGE_WRITE = "storage_write"
    NOTE_UPDATE = "note_update"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderImage:
    """Provider call succeeded and its image was loaded."""

    image_url: str
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ProviderFailure:
    """Provider call failed; reason is one of the fallback reason codes."""

    reason: str
    message: str


ProviderOutcome = ProviderImage | ProviderFailure


def fallback_prompt(reason: str, prompt: str) -> str:
    return f"[Fallback: {reason}] {prompt}"


def pending_marker(style: str) -> str:
    return f"{PENDING_PREFIX} {style}"


def utc_today() -> date:
    return datetime.now(UTC).date()


class ImageGenerationPipeline:
    """
    Generation orchestrator with injected collaborators.

    Holds no per-request state, so one instance serves concurrent requests.

    Usage::

        pipeline = ImageGenerationPipeline(builder, provider, FallbackGenerator(), storage)
        async with session_factory() as session:
            result = await pipeline.generate(session, "user-1", 42, GenerationRequest())
    """

    def __init__(
        self,
        prompt_builder: PromptBuilder,
        image_provider: ImageProvider,
        fallback: FallbackGenerator,
        storage: ObjectStorage,
        daily_limit: int = 50,
        notes: NoteRepository = note_repository,
        generations: GenerationRepository = generation_repository,
    ) -> None:
        if daily_limit <= 0:
            raise ValueError("daily_limit must be a positive integer")
        self._prompt_builder = prompt_builder
        self._image_provider = image_provider
        self._fallback = fallback
        self._storage = storage
        self._daily_limit = daily_limit
        self._notes = notes
        self._generations = generations

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    @property
    def image_provider(self) -> ImageProvider:
        return self._image_provider

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    async def quota(self, session: AsyncSession, owner_id: str) -> QuotaStatus:
        used = await self._generations.count_for_day(session, owner_id, utc_today())
        return QuotaStatus(
            used=used,
            limit=self._daily_limit,
            remaining=max(self._daily_limit - used, 0),
        )

    async def ensure_quota(self, session: AsyncSession, owner_id: str) -> int:
        """
        Raise RateLimited once today's count reached the limit.

        Returns:
            Number of generations already used today.
        """
        used = await self._generations.count_for_day(session, owner_id, utc_today())
        if used >= self._daily_limit:
            raise RateLimited(used, self._daily_limit)
        return used

    async def get_note(self, session: AsyncSession, owner_id: str, note_id: int) -> Note:
        note = await self._notes.get_owned(session, note_id, owner_id, refresh=True)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def generate(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: int,
        request: GenerationRequest,
    ) -> GenerationResult:
        """
        Run the full pipeline for one request.

        Raises:
            NoteNotFound: Note missing or owned by someone else.
            RateLimited: Daily cap reached (checked before any provider call).
            StorageFailure: Image could not be stored; note left unmodified.
        """
        note = await self.get_note(session, owner_id, note_id)
        used = await self.ensure_quota(session, owner_id)

        self._transition(note_id, GenerationStage.PROMPT_BUILDING)
        context = PromptContext.from_note(note, request.style, request.use_existing_images)
        prompt = await self._prompt_builder.build(context)
        aspect_ratio = request.aspect_ratio or select_aspect_ratio(prompt, context.style)

        self._transition(note_id, GenerationStage.PROVIDER_CALL)
        outcome = await self._call_provider(prompt, aspect_ratio, context.reference_image_urls)

        if isinstance(outcome, ProviderFailure):
            self._transition(note_id, GenerationStage.FALLBACK)
            logger.warning(
                "Image provider failed for note %d (%s), using fallback image: %s",
                note_id,
                outcome.reason,
                outcome.message,
            )
            final_prompt = fallback_prompt(outcome.reason, prompt)
        else:
            final_prompt = prompt

        self._transition(note_id, GenerationStage.STORAGE_WRITE)
        try:
            data, mime_type = await self._image_bytes(outcome, prompt)
            object_id, image_url = await self._storage.store_image(
                session, data, mime_type, owner_id
            )
        except StorageFailure:
            self._transition(note_id, GenerationStage.ERROR)
            logger.exception("Storage failed for note %d, note left unchanged", note_id)
            await self._record(session, owner_id, note_id, final_prompt, "", success=False)
            raise

        self._transition(note_id, GenerationStage.NOTE_UPDATE)
        evicted = await self._attach(session, note_id, object_id, image_url, final_prompt)
        if evicted:
            await self._storage.release(session, evicted)

        await self._record(session, owner_id, note_id, final_prompt, image_url, success=True)
        self._transition(note_id, GenerationStage.DONE)

        return GenerationResult(
            image_url=image_url,
            prompt=final_prompt,
            image_id=object_id,
            generations_remaining=max(self._daily_limit - (used + 1), 0),
            is_fallback=isinstance(outcome, ProviderFailure),
            aspect_ratio=aspect_ratio,
        )

    async def _call_provider(
        self,
        prompt: str,
        aspect_ratio: str,
        reference_image_urls: tuple[str, ...],
    ) -> ProviderOutcome:
        """Provider image as bytes, or the reason the fallback must take over."""
        try:
            image_url = await self._image_provider.generate(
                prompt, aspect_ratio, reference_image_urls
            )
            data, mime_type = await self._storage.load_image(image_url)
        except (ProviderUnavailable, ImagePayloadError) as e:
            return ProviderFailure(reason=e.reason, message=str(e))
        return ProviderImage(image_url=image_url, data=data, mime_type=mime_type)

    async def _image_bytes(self, outcome: ProviderOutcome, prompt: str) -> tuple[bytes, str]:
        if isinstance(outcome, ProviderImage):
            return outcome.data, outcome.mime_type

        image = self._fallback.generate(prompt, outcome.reason)
        try:
            return await self._storage.load_image(image)
        except ImagePayloadError as e:
            # Nothing below the fallback image
            raise StorageFailure(f"Fallback image unavailable: {e}") from e

    async def _attach(
        self,
        session: AsyncSession,
        note_id: int,
        object_id: uuid.UUID,
        image_url: str,
        final_prompt: str,
    ) -> list[uuid.UUID]:
        try:
            return await self._notes.append_image(
                session, note_id, object_id, image_url, final_prompt
            )
        except Exception:
            # Object is already committed; nothing rolls it back
            logger.error("Note %d update failed, stored object %s is orphaned", note_id, object_id)
            await session.rollback()
            raise

    async def _record(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: int,
        prompt: str,
        image_url: str,
        *,
        success: bool,
    ) -> None:
        await self._generations.record(
            session,
            owner_id=owner_id,
            note_id=note_id,
            day=utc_today(),
            prompt=prompt,
            image_url=image_url,
            success=success,
        )

    @staticmethod
    def _transition(note_id: int, stage: GenerationStage) -> None:
        logger.debug("Generation for note %d -> %s", note_id, stage.value)


# ----------------------------------------------------------------------
# Background execution
# ----------------------------------------------------------------------


async def run_scheduled_generation(
    pipeline: ImageGenerationPipeline,
    session_factory,
    owner_id: str,
    note_id: int,
    request: GenerationRequest,
) -> GenerationResult | None:
    """
    Background task body: run the pipeline once with its own session.

    FastAPI background tasks execute after the response is sent, when the
    request-scoped session is already closed. Runs to completion; no retry.
    On failure the pending marker is cleared so the note does not stay
    in the "generating" state.
    """
    async with session_factory() as session:
        try:
            result = await pipeline.generate(session, owner_id, note_id, request)
        except Exception:
            logger.exception("Scheduled generation failed for note %d", note_id)
            await session.rollback()
            await _clear_pending(session, owner_id, note_id)
            return None

    logger.info(
        "Scheduled generation complete for note %d (fallback=%s)",
        note_id,
        result.is_fallback,
    )
    return result


async def _clear_pending(session: AsyncSession, owner_id: str, note_id: int) -> None:
    note = await note_repository.get_owned(session, note_id, owner_id, refresh=True)
    if note is not None and (note.generated_prompt or "").startswith(PENDING_PREFIX):
        await note_repository.set_generated_prompt(session, note_id, None)
