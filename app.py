"""FastAPI application entry point for the Hiwar chat backend."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException

from api import (
    chat_router,
    gemini_router,
    conversations_router,
    feature_request_router,
    profile_router,
    auth_callback_router,
    changelog_router,
)
from api.auth import resolve_request_user, route_requires_user
from api.deps import initialize_all, shutdown_all, get_outbox, is_initialized, get_streaming

# Load environment variables
load_dotenv()


def _configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


_configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: Initialize all services via DI
    await initialize_all()

    yield

    # Shutdown: let background persistence finish
    await shutdown_all()


# Create FastAPI app
app = FastAPI(
    title="Hiwar Chat",
    description="Localized streaming chat backend",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Render every HTTP error as {error, details?}."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # FastAPI reads the body before dependencies run; protected routes still answer 401 first
    route = request.scope.get("route")
    if route is not None and route_requires_user(route) and await resolve_request_user(request) is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    logger.info("[API] Invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request format", "details": jsonable_encoder(exc.errors())}
    )


# Include routers
app.include_router(chat_router)
app.include_router(gemini_router)
app.include_router(conversations_router)
app.include_router(feature_request_router)
app.include_router(profile_router)
app.include_router(auth_callback_router)
app.include_router(changelog_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    if not is_initialized():
        return {"status": "starting"}
    return {
        "status": "healthy",
        "outbox": get_outbox().stats(),
        "active_streams": len(get_streaming().get_all_streaming()),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8079")), reload=True)
