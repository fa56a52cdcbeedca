"""
Service layer interfaces and implementations.

Every service takes the request's ``AsyncSession``; the ones that publish
changes also take the realtime hub (the process-wide one by default).
"""

from .interfaces import (
    ICollaboratorRegistry,
    IHealthService,
    IInvitationService,
    INoteService,
    IPresenceTracker,
    IShareLinkService,
)

from .access_resolver import AccessResolver
from .collaborator_registry import CollaboratorRegistry
from .health_service import HealthService
from .invitation_service import InvitationService
from .note_service import NoteService
from .presence_tracker import PresenceSession, PresenceTracker
from .profile_service import ProfileService
from .share_link_service import ShareLinkService

__all__ = [
    # Interfaces
    "ICollaboratorRegistry",
    "IHealthService",
    "IInvitationService",
    "INoteService",
    "IPresenceTracker",
    "IShareLinkService",

    # Implementations
    "AccessResolver",
    "CollaboratorRegistry",
    "HealthService",
    "InvitationService",
    "NoteService",
    "PresenceSession",
    "PresenceTracker",
    "ProfileService",
    "ShareLinkService",
]
