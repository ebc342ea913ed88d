"""
FastAPI application factory and entry point.

create_app() builds and wires the whole service:
  1. Logging - structlog configured from settings
  2. Resources - DB engine + session factory, payment gateways, webhook
     verifiers and the listing notifier, all kept on app.state
  3. Lifespan - creates tables on startup, closes gateway clients and
     disposes the engine on shutdown
  4. Middleware - CORS and a request id bound into every log line
  5. Exception handlers - maps domain errors to HTTP responses
  6. Routers - mounts all API endpoint groups

Running locally:
    uvicorn marketplace_payments.main:app --reload
"""

import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url

from marketplace_payments.config import Settings, settings
from marketplace_payments.database import Base, create_engine, create_session_factory
from marketplace_payments.exceptions import register_exception_handlers
from marketplace_payments.gateways.registry import build_gateways, build_verifiers
from marketplace_payments.logging_config import configure_logging
from marketplace_payments.routers import auth, payments, transactions, webhooks
from marketplace_payments.services.listing_notifier import ListingNotifier

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Creates all database tables if they don't exist. In production you'd
      use Alembic migrations instead.

    Shutdown:
      Closes the gateway HTTP clients and disposes of the database engine.
    """
    # --- Startup ---
    _ensure_sqlite_directory(app.state.settings.DATABASE_URL)
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("app_started", version=app.state.settings.APP_VERSION)
    yield
    # --- Shutdown ---
    for gateway in app.state.gateways.values():
        await gateway.aclose()
    await app.state.engine.dispose()
    logger.info("app_stopped")


def create_app(app_settings: Settings = settings) -> FastAPI:
    configure_logging(app_settings)

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Marketplace payments: initiation, webhooks and reconciliation",
        lifespan=lifespan,
    )

    # Populated here rather than in lifespan so the app is usable from an
    # in-process test client, which does not run lifespan events.
    engine = create_engine(app_settings)
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.gateways = build_gateways(app_settings)
    app.state.verifiers = build_verifiers(app_settings)
    app.state.listing_notifier = ListingNotifier()

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    register_exception_handlers(app)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(payments.router, prefix="/payments", tags=["Payments"])
    app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
    app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Liveness probe for load balancers and orchestrators."""
        return {"status": "ok", "version": app_settings.APP_VERSION}

    return app


app = create_app()
