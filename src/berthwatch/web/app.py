"""FastAPI application factory for the Berthwatch web API."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from berthwatch.web.config import WebConfig
from berthwatch.web.routes import health_router, router


def create_app(config: WebConfig, lifespan=None) -> FastAPI:
    """Build and return a configured FastAPI application."""
    app = FastAPI(title="Berthwatch", docs_url="/api/docs", lifespan=lifespan)
    app.state.database_path = config.database_path

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    app.include_router(health_router)
    app.include_router(router, prefix="/api")
    return app
