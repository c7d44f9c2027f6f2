# backend/pedeai/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pedeai.api import ROUTERS
from pedeai.errors import PedeAIError, ValidationFailed
from pedeai.state import AppState
from pedeai.storage import InMemoryStorage, LocalStore, SQLAlchemyStorage, Storage

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_storage() -> Storage:
    """Pick the storage backend from STORAGE_BACKEND (sqlalchemy | inmemory)."""
    backend = os.getenv("STORAGE_BACKEND", "sqlalchemy").lower()
    if backend == "inmemory":
        logger.info("Using in-memory storage")
        return InMemoryStorage()
    if backend == "sqlalchemy":
        database_url = os.getenv("APP_DATABASE_URL", "sqlite:///pedeai.db")
        return SQLAlchemyStorage(database_url)
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def build_state() -> AppState:
    return AppState(build_storage(), LocalStore(os.getenv("PEDEAI_LOCAL_STORE", ".pedeai_session.json")))


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """Build the FastAPI app around an AppState (built from env at startup if not given)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "app_state", None) is None:
            app.state.app_state = build_state()
        app_state: AppState = app.state.app_state
        if await app_state.restore():
            logger.info("Restored session for restaurant %s", app_state.session.restaurant_id)
        yield
        await app_state.shutdown()
        app_state.storage.close()

    app = FastAPI(title="PedeAí Back Office", lifespan=lifespan)
    app.state.app_state = state

    # Allow CORS for local dev (adjust in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PedeAIError)
    async def pedeai_error_handler(request: Request, exc: PedeAIError):
        body = {"detail": exc.message}
        if isinstance(exc, ValidationFailed):
            body["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=body)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health():
        app_state: AppState = app.state.app_state
        return {
            "status": "ok",
            "authenticated": app_state.session.authenticated,
            "polling": app_state.poller.running,
        }

    return app


app = create_app()
