"""Share-link schemas."""

import uuid

from pydantic import BaseModel, Field


class ShareLinkResponse(BaseModel):
    """Freshly generated share link; previous links stop working."""

    note_id: uuid.UUID
    url: str = Field(description="<origin>/share/<note_id>?token=<token>")


class ShareValidationResponse(BaseModel):
    note_id: uuid.UUID
    valid: bool
