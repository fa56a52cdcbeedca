"""Security utilities."""

from .jwt import (
    create_access_token,
    create_identity_token,
    decode_access_token,
    get_identity_from_token,
)
from .tokens import generate_token, tokens_match

__all__ = [
    "create_access_token",
    "create_identity_token",
    "decode_access_token",
    "get_identity_from_token",
    "generate_token",
    "tokens_match",
]
