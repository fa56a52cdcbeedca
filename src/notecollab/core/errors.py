"""
Collaboration error taxonomy.

Every error is an ``HTTPException`` so services can raise them directly and
FastAPI turns them into responses; ``kind`` is the stable identifier clients
use to pick the notification they show.
"""

from typing import Optional

from fastapi import HTTPException, status


class CollaborationError(HTTPException):
    """Base class for failures surfaced by the collaboration services."""

    kind = "collaboration_error"
    status_code_default = status.HTTP_400_BAD_REQUEST
    default_detail = "Collaboration request failed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=self.status_code_default, detail=detail or self.default_detail
        )

    def to_dict(self) -> dict:
        return {"detail": self.detail, "kind": self.kind}


class Unauthorized(CollaborationError):
    kind = "unauthorized"
    status_code_default = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action"


class NotFound(CollaborationError):
    kind = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class DuplicateActiveInvitation(CollaborationError):
    kind = "duplicate_active_invitation"
    status_code_default = status.HTTP_409_CONFLICT
    default_detail = "An active invitation already exists for this email"


class AlreadyCollaborator(CollaborationError):
    kind = "already_collaborator"
    status_code_default = status.HTTP_409_CONFLICT
    default_detail = "User already has access to this note"


class AlreadyAccepted(CollaborationError):
    kind = "already_accepted"
    status_code_default = status.HTTP_409_CONFLICT
    default_detail = "This invitation has already been accepted"


class Expired(CollaborationError):
    kind = "expired"
    status_code_default = status.HTTP_410_GONE
    default_detail = "This invitation has expired"


class InvalidShareToken(CollaborationError):
    kind = "invalid_share_token"
    status_code_default = status.HTTP_403_FORBIDDEN
    default_detail = "This share link is invalid or has been replaced"


class ConcurrentModification(CollaborationError):
    kind = "concurrent_modification"
    status_code_default = status.HTTP_409_CONFLICT
    default_detail = "The note was modified concurrently, please retry"


class StoreUnavailable(CollaborationError):
    kind = "store_unavailable"
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The document store is unavailable"
