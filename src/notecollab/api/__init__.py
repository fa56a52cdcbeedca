"""API routers for NoteCollab."""

from .collaborators import router as collaborators_router
from .health import router as health_router
from .invitations import router as invitations_router
from .notes import router as notes_router
from .presence import router as presence_router
from .realtime import router as realtime_router
from .sharing import router as sharing_router
from .users import router as users_router

__all__ = [
    "notes_router",
    "sharing_router",
    "invitations_router",
    "collaborators_router",
    "presence_router",
    "realtime_router",
    "users_router",
    "health_router",
]
