# Note model: the shared document and its embedded collaborator list
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel
from .types import GUID, JSONList

if TYPE_CHECKING:
    from .invitation import Invitation
    from .note_entry import NoteEntry


class Permission(str, Enum):
    """Permission a non-owner can hold on a note."""

    VIEW = "view"
    EDIT = "edit"

    @property
    def rank(self) -> int:
        return 2 if self is Permission.EDIT else 1


class Note(BaseModel):
    """Note composed of ordered entries, owned by its creator."""

    __tablename__ = "notes"

    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    # persisted as user_id, like the rest of the schema keyed by identity ids
    owner_id: Mapped[uuid.UUID] = mapped_column("user_id", GUID(), nullable=False)

    # embedded list of {user_id, permission, joined_at, last_active?, email?}
    collaborators: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONList(), nullable=False, default=list
    )

    sharing_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # bumped on every collaborator-list rewrite, checked by compare-and-swap
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    entries: Mapped[List["NoteEntry"]] = relationship(
        "NoteEntry",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="NoteEntry.entry_order",
        lazy="selectin",
    )

    invitations: Mapped[List["Invitation"]] = relationship(
        "Invitation",
        back_populates="note",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload",
    )

    __table_args__ = (
        Index("idx_notes_user_id", "user_id"),
        Index("idx_notes_updated_at", "updated_at"),
        CheckConstraint("length(title) <= 200", name="ck_notes_title_len"),
    )

    def __repr__(self) -> str:
        truncated = self.title if len(self.title) <= 30 else (self.title[:30] + "...")
        return f"<Note(title='{truncated}', owner_id={self.owner_id})>"

    def is_owned_by(self, user_id: Optional[uuid.UUID]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def find_collaborator(self, user_id: Optional[uuid.UUID]) -> Optional[Dict[str, Any]]:
        """Return the embedded collaborator entry for ``user_id``, if any."""
        if user_id is None:
            return None
        key = str(user_id)
        for entry in self.collaborators or []:
            if str(entry.get("user_id")) == key:
                return entry
        return None

    @property
    def collaborator_ids(self) -> List[uuid.UUID]:
        return [uuid.UUID(str(entry["user_id"])) for entry in self.collaborators or []]
