"""Identity supplied by the external identity provider."""

import uuid

from pydantic import BaseModel, Field, field_validator


class Identity(BaseModel):
    """The authenticated caller: stable user id plus account email."""

    id: uuid.UUID = Field(description="Identity provider user id")
    email: str = Field(description="Account email, lower-cased")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()
