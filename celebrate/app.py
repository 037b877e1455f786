"""
FastAPI application entry point for the celebration site backend.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from celebrate.actions import ActionContext
from celebrate.config import Settings, get_settings
from celebrate.dependencies import build_context
from celebrate.routes import router
from celebrate.storage import LocalStorageClient


def create_app(
    settings: Optional[Settings] = None, context: Optional[ActionContext] = None
) -> FastAPI:
    if context is None:
        context = build_context(settings or get_settings())
    settings = context.settings

    app = FastAPI(title="Celebrate Backend (FastAPI)", version="0.1.0")
    app.state.context = context
    app.include_router(router, prefix=settings.api_prefix)
    if isinstance(context.storage, LocalStorageClient):
        app.mount(
            "/uploads",
            StaticFiles(directory=context.storage.uploads_dir, check_dir=False),
            name="uploads",
        )
    return app


app = create_app()
