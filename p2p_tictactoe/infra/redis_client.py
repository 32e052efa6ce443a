from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis

from p2p_tictactoe.config import Settings

# decode_responses=True => strings in/out instead of bytes.
# Peers share the channel, so bytes that are not UTF-8 decode to U+FFFD and
# then fail message validation instead of raising inside the client.
REDIS_CLIENT_OPTIONS: dict[str, Any] = {"decode_responses": True, "encoding_errors": "replace"}


def create_redis(settings: Settings) -> aioredis.Redis:
    return aioredis.Redis.from_url(settings.redis_url, **REDIS_CLIENT_OPTIONS)
