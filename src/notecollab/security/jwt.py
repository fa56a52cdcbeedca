"""Identity provider token utilities."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ..config import get_settings
from ..core.logging import get_logger
from ..core.schemas.auth import Identity

logger = get_logger("security.jwt")


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity provider does (tests and local tooling)."""
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "type": "access", "jti": str(uuid.uuid4())})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_identity_token(user_id: uuid.UUID, email: str, **kwargs) -> str:
    """Token carrying the ``sub`` and ``email`` claims we rely on."""
    return create_access_token({"sub": str(user_id), "email": email}, **kwargs)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate an access token."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.debug(f"Rejected access token: {e}")
        return None

    if payload.get("type", "access") != "access":
        return None
    return payload


def get_identity_from_token(token: str) -> Optional[Identity]:
    """Extract ``Identity`` (user id + email) from a token."""
    payload = decode_access_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None

    try:
        return Identity(id=uuid.UUID(str(user_id)), email=email)
    except ValueError:
        return None
