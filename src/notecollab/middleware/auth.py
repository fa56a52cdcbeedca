"""Authentication middleware."""

from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.schemas.auth import Identity
from ..security import get_identity_from_token


class JWTBearer(HTTPBearer):
    """Bearer token issued by the identity provider."""

    def __init__(self, auto_error: bool = True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request: Request) -> Optional[Identity]:
        credentials: Optional[HTTPAuthorizationCredentials] = await super().__call__(request)
        if not credentials:
            if not self.auto_error:
                return None
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Invalid authorization code"
            )

        if credentials.scheme != "Bearer":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Invalid authentication scheme"
            )

        identity = get_identity_from_token(credentials.credentials)
        if not identity:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token or expired token"
            )

        return identity


# Dependency for getting the current identity from the bearer token
async def get_current_identity(identity: Identity = Depends(JWTBearer())) -> Identity:
    """Get current authenticated identity."""
    return identity


async def get_optional_identity(
    identity: Optional[Identity] = Depends(JWTBearer(auto_error=False)),
) -> Optional[Identity]:
    """Identity when a bearer token is present; share-link routes work without one."""
    return identity


async def get_websocket_identity(
    websocket: WebSocket, token: Optional[str] = Query(default=None)
) -> Optional[Identity]:
    """Browsers cannot set headers on WebSockets, so the token rides in the query string."""
    if not token:
        return None
    return get_identity_from_token(token)
