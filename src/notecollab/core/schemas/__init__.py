"""Pydantic schemas for the NoteCollab API."""

from .auth import Identity
from .collaborators import (
    Collaborator,
    CollaboratorAdd,
    CollaboratorListResponse,
    CollaboratorPermissionUpdate,
    CollaboratorPresence,
    PresenceSnapshot,
    PresenceStatus,
)
from .common import ErrorResponse, HealthCheckResponse
from .invitations import (
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationListResponse,
    InvitationResponse,
)
from .notes import EntryIn, EntryOut, NoteCreate, NoteListItem, NoteListResponse, NoteResponse, NoteUpdate
from .sharing import ShareLinkResponse, ShareValidationResponse
from .users import ProfileResponse, ProfileUpdate, UserLookupResponse

__all__ = [
    "Identity",
    "Collaborator",
    "CollaboratorAdd",
    "CollaboratorListResponse",
    "CollaboratorPermissionUpdate",
    "CollaboratorPresence",
    "PresenceSnapshot",
    "PresenceStatus",
    "ErrorResponse",
    "HealthCheckResponse",
    "InvitationAcceptResponse",
    "InvitationCreate",
    "InvitationListResponse",
    "InvitationResponse",
    "EntryIn",
    "EntryOut",
    "NoteCreate",
    "NoteListItem",
    "NoteListResponse",
    "NoteResponse",
    "NoteUpdate",
    "ShareLinkResponse",
    "ShareValidationResponse",
    "ProfileResponse",
    "ProfileUpdate",
    "UserLookupResponse",
]
