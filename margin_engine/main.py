# margin_engine/main.py
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from margin_engine.api.pricing import router as pricing_router
from margin_engine.core.logging_config import logger, setup_logging
from margin_engine.core.settings import Settings, get_settings
from margin_engine.storage.rates_loader import load_country_rates


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_json)
        # Static per-country configuration: loaded once, never mutated
        app.state.country_rates = load_country_rates(settings.country_rates_path)
        logger.info(
            "startup",
            service=settings.app_name,
            env=settings.app_env,
            countries=[c.value for c in app.state.country_rates],
        )
        yield
        logger.info("shutdown", service=settings.app_name)

    app = FastAPI(title="Margin Engine", version="0.1.0", lifespan=lifespan)

    # ----------------------------------------------------
    # Health
    # ----------------------------------------------------
    @app.get("/health", include_in_schema=True)
    def health() -> dict:
        return {"status": "ok"}

    # ----------------------------------------------------
    # Logging middleware
    # ----------------------------------------------------
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start = time.time()

        request_id = request.headers.get("X-Request-ID", "unknown")
        client_ip = request.client.host if request.client else "unknown"

        bound_logger = logger.bind(
            request_id=request_id,
            ip=client_ip,
            endpoint=str(request.url.path),
            method=request.method,
        )

        bound_logger.info("request_started")
        response = await call_next(request)
        latency_ms = round((time.time() - start) * 1000, 2)

        bound_logger.bind(status_code=response.status_code, latency_ms=latency_ms).info(
            "request_finished"
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(pricing_router)
    return app


app = create_app()
