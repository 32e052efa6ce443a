from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

import redis.asyncio as aioredis

from p2p_tictactoe.config import Settings
from p2p_tictactoe.infra.redis_client import create_redis
from p2p_tictactoe.presentation import Presenter
from p2p_tictactoe.router import EventRouter, RouterConfig
from p2p_tictactoe.session import GameSession
from p2p_tictactoe.substrate import MessagingSubstrate, RedisSubstrate

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    """Everything one process needs to play: identity, session, substrate, router."""

    settings: Settings
    session: GameSession
    substrate: MessagingSubstrate
    router: EventRouter
    redis: aioredis.Redis | None = None
    task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


def build_runtime(
    *,
    settings: Settings,
    presenter: Presenter,
    substrate: MessagingSubstrate | None = None,
    r: aioredis.Redis | None = None,
) -> Runtime:
    """Wire a session and router for `settings.peer_id`.

    Without an explicit substrate, a Redis one is built from `r` (or `settings.redis_url`).
    """

    client: aioredis.Redis | None = None
    if substrate is None:
        client = r if r is not None else create_redis(settings)
        substrate = RedisSubstrate(r=client, local_id=settings.peer_id, presence_ttl_s=settings.presence_ttl_s)

    session = GameSession(local_id=settings.peer_id)
    router = EventRouter(
        session=session,
        substrate=substrate,
        presenter=presenter,
        config=RouterConfig(topic=settings.topic, poll_s=settings.poll_s, heartbeat_s=settings.heartbeat_s),
    )
    return Runtime(settings=settings, session=session, substrate=substrate, router=router, redis=client)


async def start_runtime(rt: Runtime) -> None:
    if rt.running:
        return
    await rt.router.start()
    rt.task = asyncio.create_task(rt.router.run(), name=f"router:{rt.settings.peer_id}")
    rt.task.add_done_callback(_log_router_exit)
    logger.info("Runtime started for %s", rt.settings.peer_id)


def _log_router_exit(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Router %s stopped: %r", task.get_name(), exc, exc_info=exc)


async def stop_runtime(rt: Runtime) -> None:
    # A router that already died was reported by _log_router_exit.
    if rt.task is not None and not rt.task.done():
        rt.task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await rt.task
    rt.task = None
    await rt.substrate.close()
    if rt.redis is not None:
        await rt.redis.aclose()
    logger.info("Runtime stopped for %s", rt.settings.peer_id)


_RUNTIME: Runtime | None = None


def init_runtime(
    *,
    settings: Settings,
    presenter: Presenter,
    substrate: MessagingSubstrate | None = None,
) -> Runtime:
    """Build the process-wide runtime once and cache it.

    Safe to call multiple times; subsequent calls return the already built instance.
    """

    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = build_runtime(settings=settings, presenter=presenter, substrate=substrate)
    return _RUNTIME


def set_runtime_for_tests(rt: Runtime | None) -> None:
    """Install (or clear, with None) the cached runtime.

    This is intended for tests so they can inject a runtime backed by fakeredis.
    """

    global _RUNTIME
    _RUNTIME = rt


def get_runtime() -> Runtime:
    if _RUNTIME is None:
        raise RuntimeError("Runtime not initialized. Call init_runtime() at startup.")
    return _RUNTIME
