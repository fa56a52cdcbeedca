"""
Invitation schemas.

Invitations are addressed to an email and become collaborator entries once
accepted.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.note import Permission


class InvitationCreate(BaseModel):
    """Invite an email address to collaborate on a note."""

    email: EmailStr = Field(description="Invitee email (case-insensitive)")
    permission: Permission = Field(default=Permission.VIEW, description="view or edit")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "bob@example.com", "permission": "view"}}
    )


class InvitationResponse(BaseModel):
    """Invitation as returned to inviters and invitees."""

    id: uuid.UUID
    note_id: uuid.UUID
    email: str
    permission: Permission
    invited_by: uuid.UUID
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]
    total: int


class InvitationAcceptResponse(BaseModel):
    invitation_id: uuid.UUID
    note_id: uuid.UUID
    permission: Permission
    accepted_at: datetime
