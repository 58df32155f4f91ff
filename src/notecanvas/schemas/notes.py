"""
Note Schemas

Pydantic models for Note API request/response validation.
Separates concerns: NoteCreate / NoteUpdate (input), NoteRead (output).
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notecanvas.models.note import MAX_IMAGES_PER_NOTE


class NoteBase(BaseModel):
    """Base schema with shared validation rules for Note fields."""

    title: str | None = Field(default=None, max_length=200, description="Optional title")
    content: str | None = Field(default=None, description="Free text content")
    tags: list[str] = Field(default_factory=list, description="Ordered tag list")

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, value: list[str]) -> list[str]:
        """Drop blank tags and surrounding whitespace, keep order."""
        return [tag.strip() for tag in value if tag.strip()]


class NoteCreate(NoteBase):
    """Request schema for POST /notes."""

    image_ids: list[UUID] = Field(
        default_factory=list,
        description=f"Uploaded stored objects to attach (first {MAX_IMAGES_PER_NOTE} kept)",
    )


class NoteUpdate(NoteBase):
    """
    Request schema for PUT /notes/{id}.

    Title, content and tags are replaced. Images are replaced only when
    image_ids is provided.
    """

    image_ids: list[UUID] | None = None


class NoteRead(NoteBase):
    """Full Note representation including derived image fields."""

    id: int
    owner_id: str
    image_ids: list[UUID] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)
    has_images: bool = False
    default_prompt: str | None = None
    generated_prompt: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)  # Enables ORM model conversion
