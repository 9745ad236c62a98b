"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.routes import payments as payments_routes
from application.utils.background import BackgroundTasks
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from core.settings import payment_settings
from infrastructure.database import Database
from infrastructure.external.admin_portal import AdminPortalClient
from infrastructure.external.payments import get_payment_gateway


# configure once at the entry point rather than on import of library modules
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database.from_settings()
    database.connect()
    app.state.database = database
    if settings.DEBUG:
        await database.create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)",
        )

    try:
        app.state.gateway = get_payment_gateway()
    except RuntimeError as exc:
        # order endpoints answer 503 until credentials are provided
        app.state.gateway = None
        logger.error("payment_gateway_unavailable", error=str(exc))
    app.state.signature_secret = payment_settings.razorpay.key_secret
    app.state.notifier = AdminPortalClient.from_settings(payment_settings)
    app.state.background = BackgroundTasks()
    logger.info("application_started", environment=settings.ENVIRONMENT)

    yield

    await app.state.background.aclose()
    await app.state.notifier.aclose()
    if app.state.gateway is not None:
        await app.state.gateway.aclose()
    await database.disconnect()
    logger.info(
        "application_shutdown",
        notifications_completed=app.state.background.completed,
        notifications_failed=app.state.background.failed,
    )


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Razorpay order, verification and refund ledger",
)

# added last runs first: request id must be bound before the logging middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(payments_routes.router)


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Liveness plus database reachability"""
    database = getattr(request.app.state, "database", None)
    db_ok = database is not None and await database.ping()
    body = {
        "status": "healthy" if db_ok else "degraded",
        "database": "up" if db_ok else "down",
        "environment": settings.ENVIRONMENT,
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=body)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
