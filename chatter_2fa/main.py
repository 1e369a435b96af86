import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatter_2fa.config import settings
from chatter_2fa.database import Base, engine
from chatter_2fa.exception_handlers import register_exception_handlers
from chatter_2fa.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from chatter_2fa.middleware.rate_limit import configure_rate_limiting
from chatter_2fa.routes import two_factor
from chatter_2fa.utils.metrics import metrics_response, set_app_info

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    logger.info("Starting up the application...")
    if settings.debug:
        # Alembic owns the schema outside of debug runs
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")
    yield
    logger.info("Shutting down the application...")
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    setup_structured_logging(
        log_level="DEBUG" if settings.debug else "INFO",
        json_format=settings.environment == "production",
    )

    app = FastAPI(
        title=settings.app_name,
        description="TOTP two-factor authentication for Chatter",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    configure_rate_limiting(app)
    register_exception_handlers(app)

    app.include_router(two_factor.router, prefix="/api/v1/2fa")

    @app.get("/health", tags=["Monitoring"])
    async def health():
        return {"status": "ok"}

    @app.get("/metrics", tags=["Monitoring"], include_in_schema=False)
    async def metrics():
        return metrics_response()

    set_app_info(settings.app_version, settings.environment)

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)  # Logs SQL statements

    return app


app = create_app()
