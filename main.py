"""
OAuth Integration Service — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from config.settings import config
from connectors.container import get_services
from connectors.routes import register_exception_handlers, router as integrations_router
from database.session import init_models

logging.basicConfig(
    level=(config.log_level or ("DEBUG" if config.debug else "INFO")).upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "aiosqlite", "sqlalchemy.engine"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="OAuth Integration Service",
        version="1.0.0",
        description="Per-tenant OAuth2 integrations with encrypted token storage and background refresh.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(integrations_router, prefix="/api/v1/integrations")

    @app.on_event("startup")
    async def on_startup():
        logger.info("Creating database tables…")
        await init_models()

        services = get_services()
        if config.token_refresh_enabled:
            await services.scheduler.start()
        else:
            logger.warning("Token refresh scheduler disabled (TOKEN_REFRESH_ENABLED=false)")

        logger.info("Application ready to accept requests.")

    @app.on_event("shutdown")
    async def on_shutdown():
        await get_services().scheduler.stop()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
