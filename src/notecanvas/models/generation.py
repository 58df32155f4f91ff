"""
Generation Record Model

Audit trail of image generation attempts, also used for daily quota counting.
"""

from datetime import date

from sqlalchemy import Boolean, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notecanvas.models.base import Base, CreatedAtMixin


class GenerationRecord(Base, CreatedAtMixin):
    """
    One row per generation attempt. Insert-only.

    note_id is deliberately not a foreign key: records outlive deleted notes
    so the daily count stays correct.
    """

    __tablename__ = "image_generations"
    __table_args__ = (Index("ix_image_generations_owner_day", "owner_id", "day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    note_id: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<GenerationRecord(owner='{self.owner_id}', note={self.note_id}, "
            f"day={self.day}, success={self.success})>"
        )
