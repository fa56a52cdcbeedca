"""Redis client for presence mirroring and cross-process change fan-out.

Every method except ``listen`` degrades to a no-op when the connection is
missing or failing: realtime state is advisory and the service keeps working
process-locally.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis

from ..config import get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Thin async wrapper; only ``listen`` lets Redis errors escape."""

    def __init__(self):
        self.settings = get_settings()
        self.redis: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self.redis is not None

    async def connect(self) -> None:
        """Connect to Redis."""
        try:
            self.redis = redis.from_url(
                self.settings.redis_url,
                max_connections=self.settings.redis_max_connections,
                decode_responses=True,
            )
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self.redis = None
            raise

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis")

    async def ping(self) -> bool:
        if not self.redis:
            return False
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis PING error: {e}")
            return False

    # Presence hashes: presence:{note_id} -> {user_id: json meta}
    async def hset_json(self, key: str, field: str, value: Dict[str, Any], expire: Optional[int] = None) -> bool:
        if not self.redis:
            return False
        try:
            await self.redis.hset(key, field, json.dumps(value, default=str))
            if expire:
                await self.redis.expire(key, expire)
            return True
        except Exception as e:
            logger.error(f"Redis HSET error for key {key}: {e}")
            return False

    async def hdel(self, key: str, field: str) -> bool:
        if not self.redis:
            return False
        try:
            return await self.redis.hdel(key, field) > 0
        except Exception as e:
            logger.error(f"Redis HDEL error for key {key}: {e}")
            return False

    async def hgetall_json(self, key: str) -> Optional[Dict[str, Dict[str, Any]]]:
        """None when Redis is unavailable, so callers can fall back to local state."""
        if not self.redis:
            return None
        try:
            raw = await self.redis.hgetall(key)
            return {field: json.loads(value) for field, value in raw.items()}
        except Exception as e:
            logger.error(f"Redis HGETALL error for key {key}: {e}")
            return None

    async def delete(self, key: str) -> bool:
        """Delete key from Redis."""
        if not self.redis:
            return False
        try:
            return await self.redis.delete(key) > 0
        except Exception as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            return False

    # Pub/sub
    async def publish_json(self, channel: str, message: Dict[str, Any]) -> bool:
        if not self.redis:
            return False
        try:
            await self.redis.publish(channel, json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.error(f"Redis PUBLISH error for channel {channel}: {e}")
            return False

    async def listen(self, *patterns: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded messages published on channels matching ``patterns``.

        Connection errors while listening propagate so the caller can resubscribe.
        """
        if not self.redis:
            return
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(*patterns)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning(f"Dropping malformed message on {message.get('channel')}")
                    continue
                payload.setdefault("channel", message.get("channel"))
                yield payload
        finally:
            try:
                await pubsub.punsubscribe(*patterns)
            except Exception as e:
                logger.warning(f"Redis PUNSUBSCRIBE error: {e}")
            finally:
                await pubsub.aclose()


# Global Redis client instance
redis_client = RedisClient()


def get_redis_client() -> RedisClient:
    """Get Redis client instance."""
    return redis_client
