"""Presence API endpoints: one-off snapshot and a live WebSocket feed."""

import asyncio
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import CollaborationError
from ..core.logging import get_logger
from ..core.realtime import RealtimeHub, get_realtime_hub
from ..core.schemas.auth import Identity
from ..core.schemas.collaborators import PresenceSnapshot
from ..core.services import PresenceSession, PresenceTracker
from ..database import get_db_session
from ..middleware.auth import get_current_identity, get_websocket_identity

logger = get_logger("api.presence")

router = APIRouter(prefix="/notes/{note_id}/presence", tags=["presence"])


@router.get("/", response_model=PresenceSnapshot)
async def get_presence(
    note_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Who is on the note right now, without joining."""
    tracker = PresenceTracker(session, hub)
    return await tracker.snapshot(note_id, identity.id)


async def _pump_heartbeats(websocket: WebSocket, presence: PresenceSession) -> None:
    """Any client message counts as activity; returns when the client goes away."""
    try:
        while True:
            await websocket.receive_text()
            await presence.heartbeat()
    except WebSocketDisconnect:
        return


@router.websocket("/ws")
async def presence_feed(
    websocket: WebSocket,
    note_id: UUID,
    identity: Optional[Identity] = Depends(get_websocket_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Join the note's presence channel and receive a snapshot on every sync."""
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    tracker = PresenceTracker(session, hub)
    try:
        async with tracker.open(note_id, identity.id) as presence:
            await websocket.send_json(presence.as_model().model_dump(mode="json"))
            receiver = asyncio.create_task(_pump_heartbeats(websocket, presence))
            update = asyncio.create_task(presence.next_update())
            try:
                while True:
                    done, _ = await asyncio.wait(
                        {receiver, update}, return_when=asyncio.FIRST_COMPLETED
                    )
                    if receiver in done:
                        break
                    await websocket.send_json(update.result().model_dump(mode="json"))
                    update = asyncio.create_task(presence.next_update())
            finally:
                receiver.cancel()
                update.cancel()
    except CollaborationError as exc:
        logger.info(
            "Presence connection refused",
            extra={"note_id": str(note_id), "user_id": str(identity.id), "kind": exc.kind},
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.kind)
    except WebSocketDisconnect:
        pass
