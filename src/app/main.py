import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.middleware.sessions import SessionMiddleware

from src import version
from src.app.admin import router as admin_router
from src.app.setup import router as setup_router
from src.config.settings import settings
from src.core.database import get_session, init_db
from src.core.exceptions import HubError
from src.core.logger import configure_logging
from src.domain.audit.router import router as access_log_router
from src.domain.catalog.router import router as catalog_router
from src.domain.invitations.router import router as invitation_router
from src.domain.users.router import router as auth_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages the startup and shutdown lifecycle of the FastAPI application."""
    configure_logging()

    # Initialize SQLite schema
    await init_db()

    yield


# --- Application Setup ---
app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url=None,
)

# --- Middleware ---
# Signed cookie carrying the {id, tier, role, name, email} claim set
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    max_age=settings.SESSION_MAX_AGE,
    https_only=not settings.DEBUG,  # Allow HTTP in dev, HTTPS in prod
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Binds a request id to every log line of the request and echoes it back.

    Args:
        request: The incoming HTTP request.
        call_next: The next middleware or route handler in the pipeline.

    Returns:
        Response: The HTTP response with ``X-Request-ID`` and ``X-Process-Time`` headers.
    """
    # Reuse an id already set by an upstream proxy
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{request.method} {request.url.path} crashed after {time.perf_counter() - start:.4f}s")
            raise

        elapsed = time.perf_counter() - start
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.4f}s")
        return response


# --- Exception Handlers ---
@app.exception_handler(HubError)
async def hub_error_handler(request: Request, exc: HubError) -> JSONResponse:
    """Renders business-rule failures with their category and message.

    Args:
        request: The incoming HTTP request.
        exc: The raised domain error.

    Returns:
        JSONResponse: The mapped status code with an ``error``/``message`` body.
    """
    logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error, "message": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: hides internals and returns the id to quote in a bug report."""
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred.",
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    )


# --- Routing ---
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(access_log_router)
app.include_router(invitation_router)
app.include_router(admin_router)
app.include_router(setup_router)


@app.get("/health", tags=["System"])
async def health_check(session: Annotated[AsyncSession, Depends(get_session)]) -> dict[str, str]:
    """Liveness probe for monitors. Reports ``degraded`` when the store is unreachable.

    Returns:
        dict: Overall status, database status and build identifiers.
    """
    database = "ok"
    try:
        await session.exec(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = "unreachable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "service": settings.APP_NAME,
        "version": version.VERSION,
        "build_time": version.BUILD_TIMESTAMP,
    }
