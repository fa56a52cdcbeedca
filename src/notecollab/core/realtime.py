"""
Realtime hub: row-change notifications and per-note presence channels.

Subscribers get explicit ``Subscription`` handles and must close them when
their scope ends. Events are delivered to in-process subscribers directly and
relayed to other processes through Redis pub/sub when Redis is connected.
Delivery is fire-and-forget: a failing callback is logged and skipped.
"""

import asyncio
import inspect
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from redis.exceptions import RedisError

from ..config import get_settings
from .logging import get_logger
from .models.base import utcnow
from .redis_client import RedisClient, get_redis_client

logger = get_logger("realtime")

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

# Seconds between attempts to re-subscribe the relay after a Redis failure
RELAY_RETRY_INITIAL = 0.5
RELAY_RETRY_MAX = 30.0


@dataclass
class ChangeEvent:
    """A row-level change on one table."""

    table: str
    event: str
    record: Dict[str, Any]
    old_record: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "event": self.event,
            "record": self.record,
            "old_record": self.old_record,
        }


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
ChangePredicate = Callable[[ChangeEvent], bool]
PresenceCallback = Callable[[uuid.UUID, Dict[uuid.UUID, Dict[str, Any]]], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    """Handle returned by every subscribe call; ``close()`` is idempotent."""

    topic: str
    callback: Callable[..., Any]
    predicate: Optional[ChangePredicate] = None
    _registry: Optional[List["Subscription"]] = field(default=None, repr=False)
    _index: Optional[Dict[Any, List["Subscription"]]] = field(default=None, repr=False)
    _key: Any = field(default=None, repr=False)
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._registry is None:
            return
        if self in self._registry:
            self._registry.remove(self)
        # forget the topic once its last subscriber leaves
        if not self._registry and self._index is not None and self._index.get(self._key) is self._registry:
            del self._index[self._key]

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


async def _invoke(callback: Callable[..., Any], *args) -> None:
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Realtime subscriber failed", extra={"callback": repr(callback)})


class RealtimeHub:
    """Process-wide fan-out for change events and presence."""

    def __init__(
        self,
        redis_client: Optional[RedisClient] = None,
        events_per_second: Optional[int] = None,
        presence_ttl_seconds: Optional[int] = None,
    ):
        settings = get_settings()
        self.redis = redis_client or get_redis_client()
        self.events_per_second = events_per_second or settings.realtime_events_per_second
        self.presence_ttl_seconds = presence_ttl_seconds or settings.presence_idle_seconds * 2
        self.origin = uuid.uuid4().hex

        self._change_subs: Dict[str, List[Subscription]] = {}
        self._presence_subs: Dict[uuid.UUID, List[Subscription]] = {}
        self._members: Dict[uuid.UUID, Dict[uuid.UUID, Dict[str, Any]]] = {}
        self._track_times: Dict[uuid.UUID, Deque[float]] = {}
        self._listener: Optional[asyncio.Task] = None

    # Row changes
    def subscribe_changes(
        self,
        table: str,
        callback: ChangeCallback,
        predicate: Optional[ChangePredicate] = None,
    ) -> Subscription:
        registry = self._change_subs.setdefault(table, [])
        sub = Subscription(
            topic=f"changes:{table}",
            callback=callback,
            predicate=predicate,
            _registry=registry,
            _index=self._change_subs,
            _key=table,
        )
        registry.append(sub)
        return sub

    async def publish_change(
        self,
        table: str,
        event: str,
        record: Dict[str, Any],
        old_record: Optional[Dict[str, Any]] = None,
    ) -> ChangeEvent:
        change = ChangeEvent(table=table, event=event, record=record, old_record=old_record)
        await self._dispatch_change(change)
        await self.redis.publish_json(
            f"changes:{table}", {"origin": self.origin, "kind": "change", **change.to_dict()}
        )
        return change

    async def _dispatch_change(self, change: ChangeEvent) -> None:
        for sub in list(self._change_subs.get(change.table, [])):
            if sub.closed:
                continue
            if sub.predicate is not None:
                try:
                    if not sub.predicate(change):
                        continue
                except Exception:
                    logger.exception("Change predicate failed", extra={"table": change.table})
                    continue
            await _invoke(sub.callback, change)

    # Presence
    def subscribe_presence(self, note_id: uuid.UUID, callback: PresenceCallback) -> Subscription:
        registry = self._presence_subs.setdefault(note_id, [])
        sub = Subscription(
            topic=f"presence:{note_id}",
            callback=callback,
            _registry=registry,
            _index=self._presence_subs,
            _key=note_id,
        )
        registry.append(sub)
        return sub

    def _allow_track(self, note_id: uuid.UUID) -> bool:
        """Sliding one-second window per channel."""
        now = time.monotonic()
        window = self._track_times.setdefault(note_id, deque())
        while window and now - window[0] >= 1.0:
            window.popleft()
        if len(window) >= self.events_per_second:
            return False
        window.append(now)
        return True

    async def track(
        self, note_id: uuid.UUID, user_id: uuid.UUID, meta: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Announce ``user_id`` as present on ``note_id``.

        Refreshes of an already-present member are rate limited and may be
        dropped (returns False); joins are never dropped.
        """
        members = self._members.setdefault(note_id, {})
        if user_id in members and not self._allow_track(note_id):
            logger.debug("Presence update dropped by rate limit", extra={"note_id": str(note_id)})
            return False

        state = {
            "user_id": str(user_id),
            "note_id": str(note_id),
            "last_active": utcnow().isoformat(),
            **(meta or {}),
        }
        members[user_id] = state
        await self.redis.hset_json(
            f"presence:{note_id}", str(user_id), state, expire=self.presence_ttl_seconds
        )
        await self._sync(note_id)
        return True

    async def untrack(self, note_id: uuid.UUID, user_id: uuid.UUID) -> None:
        members = self._members.get(note_id, {})
        members.pop(user_id, None)
        if not members:
            self._members.pop(note_id, None)
            self._track_times.pop(note_id, None)
        await self.redis.hdel(f"presence:{note_id}", str(user_id))
        await self._sync(note_id)

    async def members(self, note_id: uuid.UUID) -> Dict[uuid.UUID, Dict[str, Any]]:
        """Current member set; Redis is authoritative across processes when available."""
        shared = await self.redis.hgetall_json(f"presence:{note_id}")
        if shared is None:
            return dict(self._members.get(note_id, {}))
        members: Dict[uuid.UUID, Dict[str, Any]] = {}
        for key, state in shared.items():
            try:
                members[uuid.UUID(key)] = state
            except ValueError:
                continue
        return members

    async def reset_channel(self, note_id: uuid.UUID) -> None:
        """Channel dropped: the member set collapses to empty."""
        self._members.pop(note_id, None)
        self._track_times.pop(note_id, None)
        await self.redis.delete(f"presence:{note_id}")
        await self._sync(note_id)

    async def _sync(self, note_id: uuid.UUID, relay: bool = True) -> None:
        members = await self.members(note_id)
        for sub in list(self._presence_subs.get(note_id, [])):
            if not sub.closed:
                await _invoke(sub.callback, note_id, members)
        if relay:
            await self.redis.publish_json(
                f"presence:{note_id}", {"origin": self.origin, "kind": "sync", "note_id": str(note_id)}
            )

    # Cross-process relay
    async def run_listener(self) -> None:
        """Relay events published by other processes to local subscribers.

        Runs until cancelled. When the Redis subscription drops it is logged
        and re-established, backing off up to ``RELAY_RETRY_MAX`` seconds.
        """
        delay = RELAY_RETRY_INITIAL
        while True:
            try:
                async for message in self.redis.listen("changes:*", "presence:*"):
                    delay = RELAY_RETRY_INITIAL
                    await self._relay(message)
            except (RedisError, OSError) as exc:
                logger.warning(
                    "Realtime relay lost its Redis subscription",
                    extra={"error": str(exc), "retry_in": delay},
                )
            else:
                if not self.redis.connected:
                    logger.info("Realtime relay stopped, Redis is not connected")
                    return
                logger.warning("Realtime relay subscription ended", extra={"retry_in": delay})
            await asyncio.sleep(delay)
            delay = min(delay * 2, RELAY_RETRY_MAX)

    async def _relay(self, message: Dict[str, Any]) -> None:
        if message.get("origin") == self.origin:
            return
        try:
            if message.get("kind") == "change":
                await self._dispatch_change(
                    ChangeEvent(
                        table=message["table"],
                        event=message["event"],
                        record=message.get("record") or {},
                        old_record=message.get("old_record"),
                    )
                )
            elif message.get("kind") == "sync":
                await self._sync(uuid.UUID(message["note_id"]), relay=False)
        except (KeyError, ValueError):
            logger.warning("Dropping malformed realtime message", extra={"payload": message})

    def start_listener(self) -> Optional[asyncio.Task]:
        if not self.redis.connected:
            return None
        self._listener = asyncio.create_task(self.run_listener(), name="realtime-listener")
        return self._listener

    def stats(self) -> Dict[str, Any]:
        """Relay state and live subscription counts."""
        return {
            "redis_connected": self.redis.connected,
            "relay_running": self._listener is not None and not self._listener.done(),
            "change_subscribers": {table: len(subs) for table, subs in self._change_subs.items()},
            "presence_channels": len(self._presence_subs),
            "present_members": sum(len(members) for members in self._members.values()),
        }


# Global hub instance
_realtime_hub: Optional[RealtimeHub] = None


def get_realtime_hub() -> RealtimeHub:
    """Get the process-wide realtime hub."""
    global _realtime_hub
    if _realtime_hub is None:
        _realtime_hub = RealtimeHub()
    return _realtime_hub
