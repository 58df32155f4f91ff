"""
Note Models

A note owns up to MAX_IMAGES_PER_NOTE images. Images are stored as
append-only rows in ``note_images`` rather than as array columns on the
note, so concurrent generations insert rows instead of rewriting a shared
list. The displayed image lists are derived from those rows.
"""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notecanvas.models.base import Base, CreatedAtMixin, TimestampMixin

MAX_IMAGES_PER_NOTE: int = 3


class Note(Base, TimestampMixin):
    """
    User-owned text note.

    Attributes:
        id: Primary key.
        owner_id: Identity of the owning user (indexed, all queries filter on it).
        title: Optional title (max 200 chars).
        content: Optional free text.
        tags: Ordered list of tag strings.
        default_prompt: Directive used for generation when content is empty.
        generated_prompt: Last prompt used for generation, or a pending marker.
        images: Attached images, oldest first.
    """

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    default_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)

    # selectin: async sessions cannot lazy-load on attribute access
    images: Mapped[list[NoteImage]] = relationship(
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="NoteImage.id",
        lazy="selectin",
    )

    @property
    def image_ids(self) -> list[uuid.UUID]:
        return [image.object_id for image in self.images]

    @property
    def image_urls(self) -> list[str]:
        return [image.url for image in self.images]

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0

    def prompt_source(self) -> str:
        """Text used to build a generation prompt (content, else default prompt)."""
        return self.content or self.default_prompt or ""

    def __repr__(self) -> str:
        title = self.title or ""
        return f"<Note(id={self.id}, owner='{self.owner_id}', title='{title[:20]}')>"


class NoteImage(Base, CreatedAtMixin):
    """
    One image attached to a note.

    Rows are only inserted or deleted, never updated. The autoincrement id
    gives a strict insertion order used for oldest-first eviction.
    """

    __tablename__ = "note_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    note_id: Mapped[int] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    object_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)

    note: Mapped[Note] = relationship(back_populates="images")

    def __repr__(self) -> str:
        return f"<NoteImage(id={self.id}, note={self.note_id}, object={self.object_id!s:.8})>"
