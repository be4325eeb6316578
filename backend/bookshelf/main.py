"""Bookshelf Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookshelf.api.cache_rules import build_cache_rules
from bookshelf.api.errors import register_exception_handlers
from bookshelf.api.health import router as health_router
from bookshelf.api.router import api_router
from bookshelf.core import Settings, async_session_maker, settings, setup_logging
from bookshelf.core.logging import get_logger
from bookshelf.middleware import AuthGuardMiddleware, ResponseCacheMiddleware

# Import all models to ensure they're registered with Base for Alembic
from bookshelf.models import Book, User  # noqa: F401
from bookshelf.services.auth_guard import AuthGuard
from bookshelf.services.response_cache import build_response_cache
from bookshelf.services.revocation import RevocationSet

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _sweep_loop(name: str, interval: float, sweep: Callable[[], int]) -> None:
    """Run a synchronous sweep every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = sweep()
            if removed > 0:
                logger.debug(f"{name}: removed {removed} expired entries")
        except Exception:
            logger.exception(f"Error during {name}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    config: Settings = app.state.settings
    setup_logging(
        level=config.log_level,
        format_type="structured" if not config.debug else "dev",
    )
    logger.info(f"Starting {config.app_name} v{config.app_version}")

    for warning in config.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    cache = app.state.response_cache
    await cache.start()

    tasks: list[asyncio.Task[None]] = []
    for name, interval, sweep in (
        ("cache sweep", config.cache_sweep_interval, cache.sweep),
        ("revocation sweep", config.revocation_sweep_interval, app.state.auth_guard.sweep),
    ):
        task = asyncio.create_task(_sweep_loop(name, interval, sweep), name=name)
        task.add_done_callback(task_done_callback)
        tasks.append(task)

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await cache.close()


def create_app(
    config: Settings = settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Each app owns its revocation set, auth guard and response cache; nothing
    is shared between two apps in the same process.
    """
    app = FastAPI(
        title=config.app_name,
        description="Personal book collection API",
        version=config.app_version,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )

    factory = session_factory or async_session_maker
    app.state.settings = config
    app.state.session_factory = factory
    app.state.auth_guard = AuthGuard(
        RevocationSet(
            capacity=config.revocation_capacity,
            evict_fraction=config.revocation_evict_fraction,
        ),
        factory,
        config,
    )
    app.state.response_cache = build_response_cache(config)

    register_exception_handlers(app)

    # Starlette runs middleware in reverse order of addition: the cache sits
    # inside auth so nothing is served from cache before the token is checked.
    app.add_middleware(ResponseCacheMiddleware, rules=build_cache_rules(config), config=config)
    app.add_middleware(AuthGuardMiddleware)

    # CORS middleware - MUST be outermost so that CORS headers are present on
    # ALL responses, including 401 from the auth guard.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
        ],
        expose_headers=["X-Cache", "X-Cache-Key"],
    )

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": config.app_name,
            "version": config.app_version,
        }

    return app


# Application instance
app = create_app()
