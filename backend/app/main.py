import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from routes import rooms, rooms_ws
from services.housekeeping import run_idle_sweeper
from services.room_hub import RoomHub
from services.store import SessionStore

logger = logging.getLogger(__name__)


def create_app(store: SessionStore | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the API around an explicitly owned store and hub."""
    settings = settings or get_settings()
    store = store or SessionStore(idle_timeout=timedelta(seconds=settings.room_idle_timeout_seconds))
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(run_idle_sweeper(store, settings.room_sweep_interval_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            logger.info("Idle sweeper stopped")

    app = FastAPI(title="Planning Poker API", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.hub = RoomHub(is_member=lambda room_code, channel: store.room_for_channel(channel.id) == room_code)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed or missing fields are a 400, not FastAPI's default 422."""
        return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - started_at, 3),
        }

    app.include_router(rooms.router, prefix="/api")
    app.include_router(rooms_ws.router, prefix="/api")
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


settings = get_settings()
logging.basicConfig(level=settings.log_level)
app = create_app(settings=settings)


def run() -> None:
    import uvicorn

    logger.info("Starting Planning Poker backend on %s:%s", settings.host, settings.port)
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
