from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

DEFAULT_TOPIC = "TicTacToe"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def generate_peer_id() -> str:
    return f"peer-{uuid4().hex[:12]}"


@dataclass(frozen=True, slots=True)
class Settings:
    # Local identity; built once at startup and passed to session + substrate.
    peer_id: str
    redis_url: str = DEFAULT_REDIS_URL
    topic: str = DEFAULT_TOPIC
    # Peers whose last heartbeat is older than this are no longer listed.
    presence_ttl_s: float = 15.0
    heartbeat_s: float = 5.0
    # How long one housekeeping poll blocks waiting for a raw message.
    poll_s: float = 0.25
    log_level: str = "INFO"


def load_dotenv_if_present(*, path: Path | None = None) -> None:
    """Load a `.env` file (if any) without overriding the real environment."""

    env_path = path or Path.cwd() / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


def load_settings(*, env: Mapping[str, str] | None = None, peer_id: str | None = None) -> Settings:
    e = os.environ if env is None else env
    return Settings(
        peer_id=peer_id or e.get("TICTACTOE_PEER_ID") or generate_peer_id(),
        redis_url=e.get("REDIS_URL", DEFAULT_REDIS_URL),
        topic=e.get("TICTACTOE_TOPIC", DEFAULT_TOPIC),
        presence_ttl_s=float(e.get("TICTACTOE_PRESENCE_TTL_S", "15")),
        heartbeat_s=float(e.get("TICTACTOE_HEARTBEAT_S", "5")),
        poll_s=float(e.get("TICTACTOE_POLL_S", "0.25")),
        log_level=e.get("TICTACTOE_LOG_LEVEL", "INFO").upper(),
    )
