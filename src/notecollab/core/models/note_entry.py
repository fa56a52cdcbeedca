# Ordered text/audio entries of a note
import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel
from .types import GUID

if TYPE_CHECKING:
    from .note import Note


class NoteEntry(BaseModel):
    """One block of a note; ``audio_url`` points into the blob store."""

    __tablename__ = "note_entries"

    note_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    audio_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    entry_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    note: Mapped["Note"] = relationship("Note", back_populates="entries")

    __table_args__ = (Index("idx_note_entries_note_order", "note_id", "entry_order"),)

    def __repr__(self) -> str:
        return f"<NoteEntry(note_id={self.note_id}, order={self.entry_order})>"
