"""Realtime change feed over WebSocket."""

import asyncio
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from ..core.logging import get_logger
from ..core.realtime import ChangeEvent, RealtimeHub, get_realtime_hub
from ..core.schemas.auth import Identity
from ..middleware.auth import get_websocket_identity

logger = get_logger("api.realtime")

router = APIRouter(prefix="/realtime", tags=["realtime"])

QUEUE_SIZE = 100


def _rows(change: ChangeEvent):
    return [row for row in (change.record, change.old_record) if row]


def invitations_for(email: str):
    """Invitation changes addressed to ``email``."""
    email = email.lower()

    def predicate(change: ChangeEvent) -> bool:
        return any((row.get("email") or "").lower() == email for row in _rows(change))

    return predicate


def notes_for(user_id: UUID):
    """Note changes the user can see: owned or collaborating, before or after the change."""
    key = str(user_id)

    def is_member(row: Dict[str, Any]) -> bool:
        if str(row.get("user_id")) == key:
            return True
        return any(str(c.get("user_id")) == key for c in row.get("collaborators") or [])

    def predicate(change: ChangeEvent) -> bool:
        return any(is_member(row) for row in _rows(change))

    return predicate


async def pump_changes(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    """Send queued changes until the client disconnects.

    Clients only send keepalives. A single ``queue.get()`` stays pending
    across keepalives and is never cancelled while the feed is live.
    """
    receiver = asyncio.create_task(websocket.receive_text())
    outgoing = asyncio.create_task(queue.get())
    try:
        while True:
            done, _ = await asyncio.wait({receiver, outgoing}, return_when=asyncio.FIRST_COMPLETED)
            if outgoing in done:
                await websocket.send_json(outgoing.result())
                outgoing = asyncio.create_task(queue.get())
            if receiver in done:
                # raises WebSocketDisconnect once the client is gone
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
    finally:
        receiver.cancel()
        outgoing.cancel()


@router.websocket("/ws")
async def change_feed(
    websocket: WebSocket,
    identity: Optional[Identity] = Depends(get_websocket_identity),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Push ``invitations`` and ``notes`` changes relevant to the caller."""
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=QUEUE_SIZE)

    def forward(change: ChangeEvent) -> None:
        try:
            queue.put_nowait(change.to_dict())
        except asyncio.QueueFull:
            logger.warning(
                "Dropping change for slow realtime client",
                extra={"user_id": str(identity.id), "table": change.table},
            )

    subscriptions = [
        hub.subscribe_changes("invitations", forward, predicate=invitations_for(identity.email)),
        hub.subscribe_changes("notes", forward, predicate=notes_for(identity.id)),
    ]
    try:
        await pump_changes(websocket, queue)
    except WebSocketDisconnect:
        pass
    finally:
        for subscription in subscriptions:
            subscription.close()
