import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pads.application.store import SnapshotStore
from pads.application.subscriptions import SubscriptionRegistry
from pads.interfaces import routes as pad_routes
from pads.interfaces import ws_handler
from shared.config import settings
from shared.exceptions import AppError
from shared.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    store = SnapshotStore(server_device_id=settings.SERVER_DEVICE_ID)
    app.state.store = store
    app.state.registry = SubscriptionRegistry(
        store,
        send_timeout=settings.SEND_TIMEOUT_SECONDS,
        max_pending=settings.SUBSCRIBER_QUEUE_SIZE,
    )
    logger.info("Pad sync backend ready")
    yield
    app.state.registry.close()
    logger.info("Pad sync backend stopped after %d accepted writes", store.version)


app = FastAPI(
    title="Pad Sync",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pad_routes.router)
app.include_router(ws_handler.router)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not all(err["loc"] and err["loc"][0] == "body" for err in errors):
        return "Invalid request"
    if all(err["loc"][-1] == "lastModified" and err["type"].startswith("datetime") for err in errors):
        return "Invalid lastModified"
    return "Invalid snapshot payload"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = _validation_message(exc)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(AppError)
async def app_error_handler(request, exc: AppError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.get("/health")
async def health_check():
    return {"ok": True}


def run() -> None:
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
