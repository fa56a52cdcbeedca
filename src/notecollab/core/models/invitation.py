# Pending, time-boxed offers of collaborator access
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, ensure_utc, utcnow
from .types import GUID

if TYPE_CHECKING:
    from .note import Note

DEFAULT_INVITATION_TTL = timedelta(days=7)


class Invitation(BaseModel):
    """Invitation addressed to an email for one note."""

    __tablename__ = "invitations"

    note_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    # always stored lower-cased
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    permission: Mapped[str] = mapped_column(String(10), nullable=False, default="view")
    invited_by: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: utcnow() + DEFAULT_INVITATION_TTL,
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    note: Mapped["Note"] = relationship("Note", back_populates="invitations", lazy="noload")

    __table_args__ = (
        CheckConstraint("permission IN ('view', 'edit')", name="ck_invitations_permission"),
        Index("idx_invitations_note_email", "note_id", "email"),
        Index("idx_invitations_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<Invitation(note_id={self.note_id}, email={self.email}, accepted={self.is_accepted})>"

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now > ensure_utc(self.expires_at)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Unaccepted and unexpired: the only state that can be acted on."""
        return not self.is_accepted and not self.is_expired(now)
