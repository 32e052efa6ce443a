from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol, cast

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class MessagingSubstrate(Protocol):
    """Best-effort pub/sub + peer discovery the router depends on."""

    local_id: str

    async def subscribe(self, topic: str) -> None: ...

    async def publish(self, topic: str, payload: str) -> None: ...

    async def discover_peers(self) -> list[str]: ...

    async def next_raw(self, *, timeout: float) -> str | bytes | None: ...

    async def heartbeat(self) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class Topic:
    name: str

    @property
    def channel(self) -> str:
        return f"tictactoe:{self.name}"

    @property
    def presence_key(self) -> str:
        return f"tictactoe:peers:{self.name}"


class RedisSubstrate:
    """Redis pub/sub for game traffic, a sorted set for presence.

    Every peer periodically bumps its score (epoch seconds) in the presence set;
    discovery returns the members seen within `presence_ttl_s`. Redis delivers
    published payloads back to the publisher too, so callers must filter by sender.
    """

    def __init__(self, *, r: aioredis.Redis, local_id: str, presence_ttl_s: float = 15.0) -> None:
        self.r = r
        self.local_id = local_id
        self.presence_ttl_s = presence_ttl_s
        self._pubsub = r.pubsub(ignore_subscribe_messages=True)
        self._topics: set[str] = set()

    async def subscribe(self, topic: str) -> None:
        t = Topic(topic)
        await self._pubsub.subscribe(t.channel)
        self._topics.add(topic)
        await self.heartbeat()
        logger.info("Subscribed %s to %s", self.local_id, t.channel)

    async def publish(self, topic: str, payload: str) -> None:
        try:
            receivers = await self.r.publish(Topic(topic).channel, payload)
        except RedisError as e:
            logger.warning("Publish to %s failed: %s", topic, e)
            return
        logger.debug("Published %d bytes to %s (%s receivers)", len(payload), topic, receivers)

    async def heartbeat(self) -> None:
        now = time.time()
        try:
            for topic in self._topics:
                key = Topic(topic).presence_key
                await self.r.zadd(key, {self.local_id: now})
                await self.r.zremrangebyscore(key, "-inf", now - self.presence_ttl_s)
        except RedisError as e:
            logger.warning("Presence heartbeat for %s failed: %s", self.local_id, e)

    async def discover_peers(self) -> list[str]:
        """Currently reachable peers on our topics, deduplicated and sorted, without ourselves.

        An unreachable Redis reads as "no peers"; the failure is logged.
        """

        cutoff = time.time() - self.presence_ttl_s
        seen: set[str] = set()
        try:
            for topic in self._topics:
                members = await self.r.zrangebyscore(Topic(topic).presence_key, cutoff, "+inf")
                seen.update(_as_str(m) for m in members)
        except RedisError as e:
            logger.warning("Peer discovery failed: %s", e)
            return []
        seen.discard(self.local_id)
        return sorted(seen)

    async def next_raw(self, *, timeout: float) -> str | bytes | None:
        """Next payload published on our channels, or None after `timeout`.

        Anything published on the shared channel is untrusted: payloads the
        client cannot decode and transport failures are logged and read as None.
        """

        if not self._topics:
            return None
        try:
            msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        except UnicodeDecodeError as e:
            logger.debug("Dropping undecodable payload: %s", e)
            return None
        except RedisError as e:
            logger.warning("Receiving on %s failed: %s", sorted(self._topics), e)
            return None
        if msg is None or msg.get("type") != "message":
            return None
        return cast(str | bytes, msg["data"])

    async def close(self) -> None:
        for topic in list(self._topics):
            await self.r.zrem(Topic(topic).presence_key, self.local_id)
        try:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
        finally:
            self._topics.clear()


def _as_str(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value
