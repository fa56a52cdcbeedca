"""Opaque random tokens for invitations and share links."""

import secrets
from typing import Optional


def generate_token(nbytes: int = 32) -> str:
    """URL-safe, unguessable token."""
    return secrets.token_urlsafe(nbytes)


def tokens_match(stored: Optional[str], presented: Optional[str]) -> bool:
    """Constant-time comparison; a missing token never matches."""
    if not stored or not presented:
        return False
    return secrets.compare_digest(stored.encode(), presented.encode())
