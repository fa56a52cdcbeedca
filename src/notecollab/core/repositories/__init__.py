"""Repository layer for data access."""

from .invitation_repository import InvitationRepository
from .note_repository import NoteRepository
from .profile_repository import ProfileRepository

__all__ = [
    "NoteRepository",
    "InvitationRepository",
    "ProfileRepository",
]
