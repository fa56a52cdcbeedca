"""
Note schemas.

A note is a title plus ordered entries; each entry holds text and an
optional audio attachment URL from the blob store.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.note import Permission
from .collaborators import Collaborator


class EntryIn(BaseModel):
    content: str = Field(default="", description="Entry text (Markdown)")
    audio_url: Optional[str] = Field(default=None, max_length=1000)


class EntryOut(BaseModel):
    id: uuid.UUID
    content: str
    audio_url: Optional[str] = None
    entry_order: int

    model_config = ConfigDict(from_attributes=True)


class NoteCreate(BaseModel):
    """Note creation request schema."""

    title: str = Field(min_length=1, max_length=200, description="Note title")
    entries: List[EntryIn] = Field(default_factory=list, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Standup",
                "entries": [{"content": "Ship invitations"}, {"content": "", "audio_url": None}],
            }
        }
    )


class NoteUpdate(BaseModel):
    """Whole-note save; entries, when given, replace the stored ones."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    entries: Optional[List[EntryIn]] = Field(default=None, max_length=500)


class NoteResponse(BaseModel):
    """Note as seen by one caller, with the caller's effective permission."""

    id: uuid.UUID
    title: str
    owner_id: uuid.UUID
    permission: Permission
    is_owner: bool
    entries: List[EntryOut]
    collaborators: List[Collaborator]
    has_share_link: bool
    created_at: datetime
    updated_at: datetime


class NoteListItem(BaseModel):
    """Dashboard row: owned notes and notes shared with the caller."""

    id: uuid.UUID
    title: str
    owner_id: uuid.UUID
    permission: Permission
    is_owner: bool
    collaborator_count: int
    last_active: datetime
    updated_at: datetime


class NoteListResponse(BaseModel):
    notes: List[NoteListItem]
    total: int
