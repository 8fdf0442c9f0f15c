import logging
import random
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .routers import health, currency
from .services.currency_service import build_currency_service
from .services.currency_store import Clock
from .services.scheduler import RateTicker


def create_app(
    settings_override: Settings | None = None,
    rng: random.Random | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    rng / clock: injected into the simulation engine and settings store so
    tests can reproduce rate sequences and timestamps.
    """
    settings = settings_override or get_settings()
    if settings.db_path is None:
        settings.init_post_load()
    # Initialize logging early
    init_logging(debug=settings.debug)

    try:
        service = build_currency_service(settings, rng=rng, clock=clock)
    except Exception:
        # Failing to open the store is fatal; re-raise after logging
        logging.getLogger("pricing").exception("failed to initialize currency store")
        raise

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ticker = None
        if settings.simulation_interval_seconds > 0:
            ticker = RateTicker(service.engine, settings.simulation_interval_seconds)
            ticker.start()
        app.state.rate_ticker = ticker
        try:
            yield
        finally:
            if ticker is not None:
                ticker.stop(timeout=5)

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version,
        lifespan=lifespan,
    )
    app.state.currency_service = service
    app.state.rate_ticker = None

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(errors.PricingError, errors.pricing_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.not_found_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(currency.router)

    @app.get("/")
    async def root():
        return {"message": "Storefront Pricing Engine API", "version": settings.version}

    return app


app = create_app()
