"""
Database models for NoteCollab.

Models included:
    - Note: the shared document with its embedded collaborator list
    - NoteEntry: ordered text/audio blocks of a note
    - Invitation: pending offers of collaborator access
    - Profile: local mirror of identity provider users
"""

from .base import BaseModel
from .invitation import Invitation
from .note import Note, Permission
from .note_entry import NoteEntry
from .profile import Profile

__all__ = [
    "BaseModel",
    "Note",
    "NoteEntry",
    "Invitation",
    "Permission",
    "Profile",
]
