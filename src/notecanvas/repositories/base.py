"""
Base Repository

Generic repository pattern implementation for async SQLAlchemy CRUD operations.
Provides type-safe database access with consistent session handling.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common CRUD operations.

    All methods expect an externally managed session (injected via FastAPI
    dependency or opened by a background task).

    Usage:
        class NoteRepository(BaseRepository[Note]):
            def __init__(self):
                super().__init__(Note)
    """

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def create(self, session: AsyncSession, obj_in: Any) -> ModelType:
        """
        Create a new record.

        Args:
            session: Active database session.
            obj_in: Pydantic schema or dict with entity data.

        Returns:
            The created entity with database-generated fields populated.
        """
        data = obj_in.model_dump() if hasattr(obj_in, "model_dump") else obj_in
        db_obj = self.model(**data)
        session.add(db_obj)
        await session.commit()
        await session.refresh(db_obj)  # Load DB-generated fields (id, created_at)
        return db_obj

    async def delete(self, session: AsyncSession, db_obj: ModelType) -> None:
        """Hard delete a record."""
        await session.delete(db_obj)
        await session.commit()
