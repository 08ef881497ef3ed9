"""
Cash-Up Engine - FastAPI Main Application
=========================================
Endpoints:
- /v1/cashups/... - Cash-up submissions, review, bound evidence upload
- /v1/audit-reports - Standalone evidence upload and listing
- GET /health - Health check
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.cashup_routes import audit_router
from api.cashup_routes import router as cashup_router
from api.middleware import RequestLoggingMiddleware
from core.config import Settings, SettingsCache
from core.constants import API_PREFIX, API_VERSION
from core.errors import CashupError
from core.logging import setup_logging
from data_layer.evidence_storage import EvidenceStorage, InMemoryEvidenceStorage, MinioEvidenceStorage
from data_layer.memory_store import MemoryCashupStore
from data_layer.repository import CashupRepository, UserDirectory
from data_layer.sql_store import SqlCashupStore
from domain.schemas import HealthResponse
from observability.metrics import MetricsRegistry
from services.cashup.submission_state_machine import Clock, utcnow
from services.notifications.notification_sink import NotificationSink, RepositoryNotificationSink

logger = logging.getLogger("cashup.api")


def build_repository(settings: Settings) -> CashupRepository:
    """memory:// keeps everything in process; anything else is an SQLAlchemy URL."""
    if settings.DATABASE_URL.startswith("memory://"):
        return MemoryCashupStore()
    return SqlCashupStore.from_url(settings.DATABASE_URL, echo=settings.DEBUG)


def build_storage(settings: Settings) -> EvidenceStorage:
    if settings.STORAGE_BACKEND == "minio":
        return MinioEvidenceStorage.from_settings(settings)
    return InMemoryEvidenceStorage(settings.MINIO_BUCKET)


def create_app(
    settings_cache: SettingsCache | None = None,
    repository: CashupRepository | None = None,
    directory: UserDirectory | None = None,
    storage: EvidenceStorage | None = None,
    notification_sink: NotificationSink | None = None,
    metrics: MetricsRegistry | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure FastAPI application"""

    settings_cache = settings_cache or SettingsCache()
    settings = settings_cache.get()
    setup_logging(settings)
    for warning in settings.validate_soft():
        logger.warning(f"Config: {warning}")

    repository = repository or build_repository(settings)

    app = FastAPI(
        title="Cash-Up Review & Audit Reconciliation API",
        description="Daily cash-up submissions reconciled against uploaded transaction reports.",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings_cache = settings_cache
    app.state.repository = repository
    # Both store adapters also serve as the user directory
    app.state.directory = directory or repository
    app.state.storage = storage or build_storage(settings)
    app.state.notification_sink = notification_sink or RepositoryNotificationSink(repository)
    app.state.metrics = metrics or MetricsRegistry()
    app.state.clock = clock or utcnow

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Include routes
    app.include_router(cashup_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)

    # Exception handlers
    @app.exception_handler(CashupError)
    async def cashup_exception_handler(request: Request, exc: CashupError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Health endpoint at root level
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint"""
        state = request.app.state
        current = state.settings_cache.get()
        return HealthResponse(
            status="ok",
            version=API_VERSION,
            env=current.ENV,
            store=type(state.repository).__name__,
            storage=type(state.storage).__name__,
            metrics=state.metrics.snapshot(),
        )

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
