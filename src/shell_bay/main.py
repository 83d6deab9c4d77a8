import logging
from contextlib import asynccontextmanager
from functools import partial

import httpx
import uvicorn
from fastapi import FastAPI

from .api.routes import router
from .chat.store import ChatStore
from .chat.turn import ConversationEngine
from .config import DATA_DIR, HTTP_TIMEOUT_SECS, PORT, ROOT_PATH, SQLITE_PATH
from .data.settings import SettingsStore
from .data.sqlite_store import SQLiteStore
from .generation.client import create_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
# Request URLs carry the API key in the query string
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing SQLite store...")
    sqlite_store = SQLiteStore(str(SQLITE_PATH))
    await sqlite_store.initialize()

    logger.info("Initializing generation engine...")
    http = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECS)
    chat_store = ChatStore(sqlite_store)
    settings = SettingsStore(sqlite_store)
    engine = ConversationEngine(chat_store, settings, partial(create_client, http=http))

    app.state.sqlite_store = sqlite_store
    app.state.chat_store = chat_store
    app.state.settings = settings
    app.state.engine = engine

    logger.info("Startup complete — ready to serve")
    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.wait_idle()
    await http.aclose()
    await sqlite_store.close()


app = FastAPI(title="Shell Bay", root_path=ROOT_PATH, lifespan=lifespan)
app.include_router(router)


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=PORT)
