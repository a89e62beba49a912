from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, schemas, settings
from .db import engine, ping
from .errors import GameHangarError
from .middleware import CSRFMiddleware, SecurityHeadersMiddleware, TimeoutMiddleware
from .object_store import init_object_store
from .routers import assets, auth, demos, messages, roles, sessions, system, threads, topics, users
from .seed import ensure_seed_data

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option(
        "script_location", settings.PSQL_MIGRATE_ROOT_DIR or str(base_dir / "alembic")
    )
    cfg.set_main_option("version_table", settings.PSQL_MIGRATE_VERSION_TABLE)
    # Logging is already configured by this module
    cfg.attributes["configure_logger"] = False
    return cfg


def target_revision(expected_version: int | None) -> str:
    """Alembic revision for an integer schema version; ``head`` when unset."""
    return f"{expected_version:04d}" if expected_version else "head"


def current_revision() -> str | None:
    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection, opts={"version_table": settings.PSQL_MIGRATE_VERSION_TABLE}
        )
        return context.get_current_revision()


def run_migrations() -> None:
    """
    Upgrade the schema to the expected version.

    Raises:
        RuntimeError: If the database does not end up at the expected version.
    """
    expected = settings.PSQL_MIGRATE_EXPECTED_VERSION
    target = target_revision(expected)

    if settings.PSQL_MIGRATE_DATABASE:
        logger.info(f"run_migrations: upgrading to {target}...")
        try:
            command.upgrade(_alembic_config(), target)
        except Exception as e:
            logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
            raise
        finally:
            # Alembic used its own connection; start the app pool fresh
            engine.dispose()
    else:
        logger.info("run_migrations: disabled by PSQL_MIGRATE_DATABASE")

    if expected:
        current = current_revision()
        if current != target:
            raise RuntimeError(
                f"Database schema is at revision {current}, expected {target}"
            )
    logger.info("run_migrations: Completed successfully.")


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    try:
        settings.require_env("PSQL_CONNSTRING")
        ping(settings.PSQL_PING_TIMEOUT_MS)
        run_migrations()
        ensure_seed_data()
        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't start until these complete
    run_startup_tasks()
    init_object_store()
    logger.info("Game hangar API ready")
    yield
    logger.info("Shutting down application...")
    engine.dispose()


app = FastAPI(
    title="Game Hangar API",
    version=__version__,
    description="Game assets, playable demos, a forum around them, and user accounts",
    lifespan=lifespan,
    docs_url="/game-hangar/docs",
    openapi_url="/game-hangar/openapi.json",
    redoc_url=None,
)


# ============================================================================
# ERROR MAPPING
# ============================================================================


def _problem(status_code: int, title: str, detail: str | None) -> JSONResponse:
    problem = schemas.Problem(title=title, status=status_code, detail=detail)
    return JSONResponse(status_code=status_code, content=problem.model_dump())


@app.exception_handler(GameHangarError)
async def handle_game_hangar_error(request: Request, exc: GameHangarError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}", exc_info=exc)
    return _problem(exc.status_code, exc.title, exc.detail)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return _problem(400, "Bad request", "Request body is not valid JSON")
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in errors
    )
    return _problem(422, "Validation failed", detail)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _problem(exc.status_code, str(exc.detail), None)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _problem(500, "Internal error", None)


# ============================================================================
# MIDDLEWARE
# ============================================================================

# CORS Configuration - restrict to specific origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(TimeoutMiddleware)
app.add_middleware(CSRFMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin", "X-CSRF-Token", "Password", "Sessionid"],
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)


app.include_router(system.router)
app.include_router(auth.router)
app.include_router(sessions.router)
app.include_router(users.router)
app.include_router(roles.router)
app.include_router(assets.router)
app.include_router(demos.router)
app.include_router(topics.router)
app.include_router(threads.router)
app.include_router(messages.router)


def main() -> None:
    import uvicorn

    uvicorn.run(
        "game_hangar.main:app",
        host=settings.HOST,
        port=settings.PORT,
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
