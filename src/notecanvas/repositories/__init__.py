"""Repositories package."""

from notecanvas.repositories.base import BaseRepository
from notecanvas.repositories.generations import (
    GenerationRepository,
    generation_repository,
)
from notecanvas.repositories.notes import NoteRepository, note_repository

__all__ = [
    "BaseRepository",
    "GenerationRepository",
    "generation_repository",
    "NoteRepository",
    "note_repository",
]
