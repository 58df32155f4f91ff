"""Models package - re-exports all models for convenient imports."""

from notecanvas.models.base import Base, CreatedAtMixin, TimestampMixin
from notecanvas.models.generation import GenerationRecord
from notecanvas.models.note import MAX_IMAGES_PER_NOTE, Note, NoteImage
from notecanvas.models.storage import StoredObject

__all__ = [
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "GenerationRecord",
    "MAX_IMAGES_PER_NOTE",
    "Note",
    "NoteImage",
    "StoredObject",
]
