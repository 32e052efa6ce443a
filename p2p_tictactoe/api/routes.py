from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from p2p_tictactoe.api.deps import get_runtime_dep
from p2p_tictactoe.api.models import IntentAccepted, IntentRequest, PeerListResponse, SessionView
from p2p_tictactoe.core import events
from p2p_tictactoe.core.events import SessionEvent
from p2p_tictactoe.runtime import Runtime
from p2p_tictactoe.websocket_hub import hub

router = APIRouter()


@router.websocket("/ws/session")
async def session_updates_ws(websocket: WebSocket) -> None:
    await hub.connect(websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/session", response_model=SessionView)
async def get_session_route(rt: Runtime = Depends(get_runtime_dep)) -> SessionView:
    return rt.session.snapshot()


@router.get("/peers", response_model=PeerListResponse)
async def list_peers_route(rt: Runtime = Depends(get_runtime_dep)) -> PeerListResponse:
    peers = await rt.substrate.discover_peers()
    return PeerListResponse(local_id=rt.session.local_id, peers=peers)


def _event_for(payload: IntentRequest) -> SessionEvent:
    if payload.action == "list_peers":
        return events.list_peers()
    if payload.action == "initiate":
        if payload.peer is None:
            raise ValueError("initiate requires 'peer'")
        return events.initiate(payload.peer)
    if payload.action == "answer":
        return events.answer(bool(payload.accept))
    if payload.action == "move":
        if payload.row is None or payload.col is None:
            raise ValueError("move requires 'row' and 'col'")
        return events.move(payload.row, payload.col)
    return events.reset()


@router.post("/session/intents", response_model=IntentAccepted, status_code=status.HTTP_202_ACCEPTED)
async def submit_intent_route(payload: IntentRequest, rt: Runtime = Depends(get_runtime_dep)) -> IntentAccepted:
    """Queue a local intent for the router.

    The outcome (board updates, errors) is reported on `/ws/session`; the session
    is only ever mutated by the router loop.
    """

    try:
        await rt.router.submit(_event_for(payload))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return IntentAccepted(action=payload.action)
