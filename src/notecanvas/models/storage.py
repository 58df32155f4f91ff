"""
Stored Object Model

Binary objects (uploaded and generated images) kept in the database and
served back through the storage router.
"""

import uuid

from sqlalchemy import Integer, LargeBinary, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from notecanvas.models.base import Base, CreatedAtMixin


class StoredObject(Base, CreatedAtMixin):
    """
    Attributes:
        id: UUID primary key (generated Python-side).
        owner_id: User who uploaded or generated the object. Only the owner
            can attach it to a note.
        mime_type: Content type served back to clients.
        size: Payload size in bytes.
        data: Raw bytes.
    """

    __tablename__ = "stored_objects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StoredObject(id={self.id!s:.8}, owner='{self.owner_id}', "
            f"mime='{self.mime_type}', size={self.size})>"
        )
