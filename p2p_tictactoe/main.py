from fastapi import FastAPI
import logging

from p2p_tictactoe.api.routes import router
from p2p_tictactoe.config import load_dotenv_if_present, load_settings
from p2p_tictactoe.runtime import get_runtime, init_runtime, start_runtime, stop_runtime
from p2p_tictactoe.websocket_hub import HubPresenter, hub

app = FastAPI(title="p2p-tictactoe", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    load_dotenv_if_present()
    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)
    # Tests may have installed their own runtime already; init is a no-op then.
    rt = init_runtime(settings=settings, presenter=HubPresenter(hub))
    await start_runtime(rt)
    logger.info("Serving session for %s", rt.session.local_id)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await stop_runtime(get_runtime())


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "p2p-tictactoe", "version": "0.1.0", "peer_id": get_runtime().session.local_id}
