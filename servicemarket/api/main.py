from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from servicemarket.api.deps import build_services
from servicemarket.api.routes import admin, assistant, messages, notifications, providers, requests, site, users
from servicemarket.config import Settings, get_settings
from servicemarket.errors import MarketplaceError
from servicemarket.llm import DubaiAssistant
from servicemarket.store import DocumentStore


logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    assistant_client: Optional[DubaiAssistant] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = build_services(settings, store=store, assistant=assistant_client)
        logger.info("servicemarket API started (store=%s)", type(app.state.services.store).__name__)
        yield
        app.state.services.store.close()

    app = FastAPI(title="Service Marketplace API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MarketplaceError)
    async def marketplace_error(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.code, "message": exc.message, "retryable": exc.retryable},
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    for module in (requests, providers, users, messages, notifications, admin, site, assistant):
        app.include_router(module.router)

    return app


app = create_app()
