from __future__ import annotations

from p2p_tictactoe.runtime import Runtime, get_runtime


def get_runtime_dep() -> Runtime:
    return get_runtime()
