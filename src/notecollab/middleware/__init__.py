"""Middleware for authentication and other cross-cutting concerns."""

from .auth import JWTBearer, get_current_identity, get_optional_identity, get_websocket_identity

__all__ = ["JWTBearer", "get_current_identity", "get_optional_identity", "get_websocket_identity"]
