"""
Presence tracking for open notes.

A ``PresenceSession`` is held for as long as a user has a note open. It keeps
the user announced on the note's presence channel, re-reads the durable
collaborator list every ``presence_refresh_seconds`` and recomputes every
member's status whenever the channel syncs:

* online  - in the channel's live member set
* idle    - not live, but active within ``presence_idle_seconds``
* offline - anything else

The database connection is only checked out for the duration of each read.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings, get_settings
from ..errors import CollaborationError
from ..logging import get_logger
from ..models.base import ensure_utc, utcnow
from ..models.note import Note, Permission
from ..realtime import RealtimeHub, Subscription, get_realtime_hub
from ..repositories.note_repository import NoteRepository
from ..schemas.collaborators import (
    Collaborator,
    CollaboratorPresence,
    PresenceSnapshot,
    PresenceStatus,
)
from .access_resolver import AccessResolver
from .interfaces import IPresenceTracker

logger = get_logger("services.presence")


def compute_status(
    is_live: bool,
    last_active: Optional[datetime],
    now: datetime,
    idle_seconds: int,
) -> PresenceStatus:
    if is_live:
        return PresenceStatus.ONLINE
    if last_active is not None and now - ensure_utc(last_active) <= timedelta(seconds=idle_seconds):
        return PresenceStatus.IDLE
    return PresenceStatus.OFFLINE


def build_presence(
    note: Note,
    live_ids: Iterable[UUID],
    now: datetime,
    idle_seconds: int,
    last_seen: Optional[Dict[UUID, datetime]] = None,
) -> List[CollaboratorPresence]:
    """Presence rows for the owner followed by every collaborator."""
    live = set(live_ids)
    last_seen = last_seen or {}

    def row(user_id: UUID, permission: Permission, is_owner: bool, last_active, email=None):
        if user_id in live:
            last_active = now
        else:
            seen = last_seen.get(user_id)
            if seen is not None and (last_active is None or seen > ensure_utc(last_active)):
                last_active = seen
        return CollaboratorPresence(
            user_id=user_id,
            permission=permission,
            is_owner=is_owner,
            status=compute_status(user_id in live, last_active, now, idle_seconds),
            last_active=last_active,
            email=email,
        )

    rows = [row(note.owner_id, Permission.EDIT, True, None)]
    for entry in note.collaborators or []:
        collaborator = Collaborator.from_record(entry)
        rows.append(
            row(
                collaborator.user_id,
                collaborator.permission,
                False,
                collaborator.last_active,
                collaborator.email,
            )
        )
    return rows


class PresenceSession:
    """Handle for one user's presence on one note.

    Use as ``async with tracker.open(note_id, user_id) as presence``; the
    channel is joined on enter and left on exit.
    """

    def __init__(self, tracker: "PresenceTracker", note_id: UUID, user_id: UUID):
        self.tracker = tracker
        self.note_id = note_id
        self.user_id = user_id
        self.closed = False

        self._note: Optional[Note] = None
        self._live: Set[UUID] = set()
        self._last_seen: Dict[UUID, datetime] = {}
        self._rows: List[CollaboratorPresence] = []
        self._subscription: Optional[Subscription] = None
        self._poller: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._updates: "asyncio.Queue[PresenceSnapshot]" = asyncio.Queue(maxsize=1)

    async def start(self) -> "PresenceSession":
        note = await self.tracker.note_repo.get_by_id(self.note_id)
        await self.tracker.release()
        self.tracker.access.require(note, self.user_id)
        self._note = note

        hub = self.tracker.hub
        self._subscription = hub.subscribe_presence(self.note_id, self._on_sync)
        await hub.track(self.note_id, self.user_id)
        self._poller = asyncio.create_task(
            self._poll(), name=f"presence-poller:{self.note_id}:{self.user_id}"
        )
        logger.info(
            "Presence session opened",
            extra={"note_id": str(self.note_id), "user_id": str(self.user_id)},
        )
        return self

    async def __aenter__(self) -> "PresenceSession":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def snapshot(self) -> List[CollaboratorPresence]:
        """Latest computed presence rows (owner first)."""
        return list(self._rows)

    def as_model(self) -> PresenceSnapshot:
        return PresenceSnapshot(
            note_id=self.note_id,
            online=sorted(self._live, key=str),
            collaborators=self.snapshot(),
            generated_at=utcnow(),
        )

    async def next_update(self) -> PresenceSnapshot:
        """Wait for the next recomputation."""
        return await self._updates.get()

    async def heartbeat(self) -> bool:
        """Refresh this user's presence; may be dropped by the channel rate limit."""
        return await self.tracker.hub.track(self.note_id, self.user_id)

    async def close(self) -> None:
        """Leave the channel, stop polling and persist ``last_active``. Idempotent."""
        if self.closed:
            return
        self.closed = True

        # let an in-flight poll finish rather than cancelling its store call
        self._stop.set()
        if self._poller is not None:
            await self._poller
        if self._subscription is not None:
            self._subscription.close()
        await self.tracker.hub.untrack(self.note_id, self.user_id)
        await self._persist_last_active()
        logger.info(
            "Presence session closed",
            extra={"note_id": str(self.note_id), "user_id": str(self.user_id)},
        )

    def _on_sync(self, note_id: UUID, members: Dict[UUID, Dict[str, Any]]) -> None:
        self._live = set(members)
        self._recompute()

    def _recompute(self) -> None:
        if self._note is None:
            return
        now = utcnow()
        for user_id in self._live:
            self._last_seen[user_id] = now
        self._rows = build_presence(
            self._note,
            self._live,
            now,
            self.tracker.settings.presence_idle_seconds,
            self._last_seen,
        )

        snapshot = self.as_model()
        # only the latest snapshot matters to a slow reader
        if self._updates.full():
            self._updates.get_nowait()
        self._updates.put_nowait(snapshot)

    async def _poll(self) -> None:
        interval = self.tracker.settings.presence_refresh_seconds
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                note = await self.tracker.note_repo.get_by_id(self.note_id)
                await self.tracker.release()
            except SQLAlchemyError:
                logger.warning(
                    "Presence refresh failed",
                    extra={"note_id": str(self.note_id)},
                    exc_info=True,
                )
                await self.tracker.release(discard=True)
                continue
            if note is not None:
                self._note = note
                self._recompute()

    async def _persist_last_active(self) -> None:
        if self._note is None or self._note.is_owned_by(self.user_id):
            return
        now = utcnow()

        def touch(note: Note):
            entry = note.find_collaborator(self.user_id)
            if entry is None:
                return None
            return [
                {**record, "last_active": now.isoformat()} if record is entry else record
                for record in note.collaborators
            ]

        try:
            await self.tracker.note_repo.rewrite_collaborators(
                self.note_id, touch, retries=self.tracker.settings.collaborator_write_retries
            )
            await self.tracker.release()
        except (SQLAlchemyError, CollaborationError):
            logger.warning(
                "Could not persist last_active",
                extra={"note_id": str(self.note_id), "user_id": str(self.user_id)},
                exc_info=True,
            )
            await self.tracker.release(discard=True)


class PresenceTracker(IPresenceTracker):
    """Opens presence sessions and answers one-off presence queries."""

    def __init__(
        self,
        session: AsyncSession,
        hub: Optional[RealtimeHub] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.note_repo = NoteRepository(session)
        self.access = AccessResolver(self.settings)
        self.hub = hub or get_realtime_hub()

    def open(self, note_id: UUID, user_id: UUID) -> PresenceSession:
        return PresenceSession(self, note_id, user_id)

    async def release(self, discard: bool = False) -> None:
        """Hand the session's pooled connection back between store calls.

        Presence sessions live as long as a socket, so they must not sit in an
        open transaction. A clean read is committed, which keeps loaded notes
        usable; after a failure the session is closed and starts afresh.
        """
        if discard:
            await self.session.close()
        else:
            await self.session.commit()

    async def snapshot(self, note_id: UUID, caller_id: UUID) -> PresenceSnapshot:
        """Presence as of now, without joining the channel."""
        note = await self.note_repo.get_by_id(note_id)
        self.access.require(note, caller_id)
        members = await self.hub.members(note_id)
        now = utcnow()
        return PresenceSnapshot(
            note_id=note_id,
            online=sorted(members, key=str),
            collaborators=build_presence(note, members, now, self.settings.presence_idle_seconds),
            generated_at=now,
        )

    async def reset_channel(self, note_id: UUID) -> None:
        """Drop the channel: every open session sees an empty member set."""
        await self.hub.reset_channel(note_id)
