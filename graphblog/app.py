"""
FastAPI application entry point for the blog backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from graphblog.config import get_settings
from graphblog.dependencies import get_image_storage
from graphblog.errors import ContentError, envelope_for, status_for
from graphblog.graphql_api import create_graphql_router
from graphblog.routes import router
from graphblog.storage import LocalImageStorage

logger = logging.getLogger(__name__)


async def content_error_handler(request: Request, exc: ContentError) -> JSONResponse:
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_for(exc), content=envelope_for(exc))


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="graphblog", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["OPTIONS", "GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_exception_handler(ContentError, content_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(create_graphql_router(), prefix=f"{settings.api_prefix}/graphql")

    storage = get_image_storage()
    if isinstance(storage, LocalImageStorage):
        app.mount(
            settings.image_url_prefix,
            StaticFiles(directory=storage.directory),
            name="images",
        )
    return app
