from pathlib import Path
from contextlib import asynccontextmanager
import asyncio
from typing import Optional

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from wealthsync.api import routes
from wealthsync.core.config import Settings, get_settings
from wealthsync.core.db import SessionLocal
from wealthsync.core.errors import WealthSyncError
from wealthsync.core.logging import configure_logging, get_logger
from wealthsync.services import AssetService, NetworthService

log = get_logger("app")


def run_migrations(settings: Settings) -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL.replace("%", "%%"))
    alembic_cfg.attributes["url_from_caller"] = True
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


async def refresh_all_prices(settings: Settings) -> None:
    """Re-price wallets and stocks for every user holding active assets."""
    with SessionLocal() as db:
        users = AssetService(db).users_with_assets()
        log.info(f"Refreshing prices for {len(users)} users")
        service = NetworthService(db, settings)
        for user_id in users:
            result = await service.refresh_prices(user_id)
            if not result["success"]:
                log.warning(f"Price refresh incomplete for {user_id}")


async def scheduled_price_refresh(settings: Settings) -> None:
    """Background task that refreshes prices at the configured interval."""
    interval = settings.PRICE_REFRESH_INTERVAL_SECONDS
    log.info(f"Scheduled price refresh started (interval: {interval}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            await refresh_all_prices(settings)
        except asyncio.CancelledError:
            log.info("Scheduled price refresh cancelled")
            break
        except Exception as exc:  # noqa: BLE001
            # keep the loop alive; the next tick retries
            log.exception(f"Scheduled price refresh error: {exc}")


# -----------------------------------------------------------------------------
# Error envelope
# -----------------------------------------------------------------------------


def _envelope(request: Request, error: str, message: str) -> dict:
    body = {"error": error, "message": message}
    action = getattr(request.state, "action", None)
    if action:
        body["action"] = action
    return body


async def handle_domain_error(request: Request, exc: WealthSyncError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(f"{exc.title} on {request.url.path}: {exc.message}")
    else:
        log.warning(f"{exc.title} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_envelope(request, exc.title, exc.message))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        fields.append(f"{'.'.join(loc) or 'body'}: {err.get('msg')}")
    return JSONResponse(
        status_code=400,
        content=_envelope(request, "Validation Error", "; ".join(fields) or "Invalid request"),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.opt(exception=exc).error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=_envelope(request, "Internal Server Error", str(exc)))


# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None, migrate: bool = True) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"Starting application in {settings.ENV.upper()} mode")
        if settings.is_production:
            log.info("Production mode: Debug disabled, docs disabled, stricter logging")
        else:
            log.info("Development mode: Debug enabled, docs available")

        if migrate:
            try:
                run_migrations(settings)
            except Exception:
                log.exception("Failed to apply migrations on startup")
                raise

        refresh_task: Optional[asyncio.Task] = None
        if settings.PRICE_REFRESH_ENABLED:
            log.info("Starting scheduled price refresh task...")
            refresh_task = asyncio.create_task(scheduled_price_refresh(settings))
        else:
            log.info("Scheduled price refresh is disabled (PRICE_REFRESH_ENABLED=false)")

        yield

        log.info("Shutting down services...")
        if refresh_task:
            refresh_task.cancel()
            try:
                await refresh_task
            except asyncio.CancelledError:
                pass
        log.info("Application shutdown complete")

    app = FastAPI(
        title="WealthSync Backend",
        description="Portfolio aggregation: wallets, stocks, bank accounts and manual assets in one net-worth view",
        version="1.0.0",
        lifespan=lifespan,
        # Disable docs in production for security
        docs_url="/docs" if settings.docs_enabled else None,
        redoc_url="/redoc" if settings.docs_enabled else None,
        openapi_url="/openapi.json" if settings.docs_enabled else None,
        debug=settings.debug_enabled,
    )

    # Must stay inside CORSMiddleware, which answers browser preflights itself
    @app.middleware("http")
    async def answer_options(request: Request, call_next):
        if request.method == "OPTIONS":
            return PlainTextResponse("ok")
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-signature"],
    )

    app.add_exception_handler(WealthSyncError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(routes.wallets_router)
    app.include_router(routes.stocks_router)
    app.include_router(routes.bank_router)
    app.include_router(routes.manual_router)
    app.include_router(routes.networth_router)
    app.include_router(routes.details_router)
    app.include_router(routes.webhooks_router)
    app.include_router(routes.health_router)
    app.include_router(routes.stats_router)
    return app


app = create_app()
