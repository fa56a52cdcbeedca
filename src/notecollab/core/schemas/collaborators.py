"""
Collaborator and presence schemas.

``Collaborator`` is also the typed view over the JSON objects embedded in
``notes.collaborators``; ``to_record`` produces the stored shape.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.note import Permission


class Collaborator(BaseModel):
    """A non-owner user with standing access to a note."""

    user_id: uuid.UUID
    permission: Permission
    joined_at: datetime
    last_active: Optional[datetime] = None
    email: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Collaborator":
        return cls.model_validate(record)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class CollaboratorPermissionUpdate(BaseModel):
    """Body of a permission change."""

    permission: Permission = Field(description="New permission: view or edit")


class CollaboratorAdd(BaseModel):
    """Direct grant by the owner, bypassing the invitation flow."""

    user_id: uuid.UUID
    permission: Permission = Permission.VIEW


class CollaboratorListResponse(BaseModel):
    note_id: uuid.UUID
    collaborators: List[Collaborator]


class PresenceStatus(str, Enum):
    ONLINE = "online"
    IDLE = "idle"
    OFFLINE = "offline"


class CollaboratorPresence(BaseModel):
    """Presence row shown next to a note."""

    user_id: uuid.UUID
    permission: Permission
    is_owner: bool = False
    status: PresenceStatus
    last_active: Optional[datetime] = None
    email: Optional[str] = None


class PresenceSnapshot(BaseModel):
    note_id: uuid.UUID
    online: List[uuid.UUID]
    collaborators: List[CollaboratorPresence]
    generated_at: datetime
