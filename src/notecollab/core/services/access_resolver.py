"""Single authority on what a caller may do with a note."""

from typing import Optional
from uuid import UUID

from ...config import Settings, get_settings
from ...security import tokens_match
from ..errors import NotFound, Unauthorized
from ..logging import get_logger
from ..models.note import Note, Permission

logger = get_logger("services.access")


class AccessResolver:
    """Resolves a caller's effective permission on a note.

    Order of precedence: owner (edit), collaborator (stored permission),
    matching share token (view). Anything else is denied.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def resolve(
        self,
        note: Note,
        user_id: Optional[UUID] = None,
        share_token: Optional[str] = None,
    ) -> Optional[Permission]:
        if note.is_owned_by(user_id):
            return Permission.EDIT

        entry = note.find_collaborator(user_id)
        if entry is not None:
            try:
                return Permission(entry.get("permission"))
            except ValueError:
                logger.warning(
                    "Ignoring collaborator entry with unknown permission",
                    extra={"note_id": str(note.id), "user_id": str(user_id)},
                )

        if share_token and tokens_match(note.sharing_token, share_token):
            return Permission.VIEW

        return None

    def require(
        self,
        note: Optional[Note],
        user_id: Optional[UUID],
        share_token: Optional[str] = None,
        minimum: Permission = Permission.VIEW,
    ) -> Permission:
        """Return the caller's permission or raise.

        No access at all is reported as ``NotFound`` so note existence does not
        leak; access below ``minimum`` is ``Unauthorized``.
        """
        if note is None:
            raise NotFound("Note not found")

        permission = self.resolve(note, user_id, share_token)
        if permission is None:
            raise NotFound("Note not found")
        if permission.rank < minimum.rank:
            raise Unauthorized(f"This action requires {minimum.value} permission")
        return permission

    def is_owner(self, note: Note, user_id: Optional[UUID]) -> bool:
        return note.is_owned_by(user_id)

    def can_manage_invitations(self, note: Note, user_id: Optional[UUID]) -> bool:
        """Owner always; edit collaborators only when ``editors_can_invite`` is on."""
        if note.is_owned_by(user_id):
            return True
        if not self.settings.editors_can_invite:
            return False
        return self.resolve(note, user_id) is Permission.EDIT
