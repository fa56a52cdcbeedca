"""
Service interfaces for NoteCollab application.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..models.invitation import Invitation
from ..models.note import Permission
from ..schemas.collaborators import Collaborator, PresenceSnapshot
from ..schemas.common import HealthCheckResponse
from ..schemas.notes import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate


class INoteService(ABC):
    """Note service for CRUD operations."""

    @abstractmethod
    async def create_note(self, user_id: UUID, request: NoteCreate) -> NoteResponse:
        """Create new note."""
        pass

    @abstractmethod
    async def get_note(
        self, note_id: UUID, user_id: Optional[UUID] = None, share_token: Optional[str] = None
    ) -> NoteResponse:
        """Get note by ID as an owner, collaborator or share-link holder."""
        pass

    @abstractmethod
    async def update_note(self, note_id: UUID, user_id: UUID, request: NoteUpdate) -> NoteResponse:
        """Update existing note."""
        pass

    @abstractmethod
    async def delete_note(self, note_id: UUID, user_id: UUID) -> bool:
        """Delete note."""
        pass

    @abstractmethod
    async def list_notes(self, user_id: UUID) -> NoteListResponse:
        """Notes owned by or shared with the user."""
        pass


class IInvitationService(ABC):
    """Invitation lifecycle: create, accept, decline, list."""

    @abstractmethod
    async def create_invitation(
        self, note_id: UUID, email: str, permission: Permission, invited_by: UUID
    ) -> Invitation:
        pass

    @abstractmethod
    async def accept_invitation(
        self, invitation_id: UUID, user_id: UUID, email: Optional[str] = None
    ) -> Invitation:
        pass

    @abstractmethod
    async def decline_invitation(self, invitation_id: UUID, email: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    async def list_pending_invitations(self, email: str) -> List[Invitation]:
        pass


class ICollaboratorRegistry(ABC):
    """Standing access of non-owners to a note."""

    @abstractmethod
    async def add_or_update(
        self,
        note_id: UUID,
        user_id: UUID,
        permission: Permission,
        caller_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> Collaborator:
        pass

    @abstractmethod
    async def remove(self, note_id: UUID, user_id: UUID, caller_id: UUID) -> bool:
        pass

    @abstractmethod
    async def update_permission(
        self, note_id: UUID, user_id: UUID, permission: Permission, caller_id: UUID
    ) -> Collaborator:
        pass


class IShareLinkService(ABC):
    """Bearer share links."""

    @abstractmethod
    async def generate(self, note_id: UUID, caller_id: UUID) -> str:
        """Replace the note's share token and return the new link."""
        pass

    @abstractmethod
    async def validate(self, note_id: UUID, token: Optional[str]) -> bool:
        pass


class IPresenceTracker(ABC):
    """Who is looking at a note right now."""

    @abstractmethod
    def open(self, note_id: UUID, user_id: UUID):
        """Presence session handle; joins the channel when entered."""
        pass

    @abstractmethod
    async def snapshot(self, note_id: UUID, caller_id: UUID) -> PresenceSnapshot:
        pass


class IHealthService(ABC):
    """Health check service."""

    @abstractmethod
    async def get_health_status(self) -> HealthCheckResponse:
        """Get overall system health."""
        pass

    @abstractmethod
    async def check_database_health(self) -> Dict[str, Any]:
        """Check database connection."""
        pass

    @abstractmethod
    async def check_redis_health(self) -> Dict[str, Any]:
        """Check Redis connection."""
        pass

