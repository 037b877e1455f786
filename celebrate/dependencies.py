"""
Dependency wiring for the FastAPI app.

Collaborators are built once by `build_context` and stored on the app; the
request handlers receive them through `get_context`.
"""

from __future__ import annotations

import logging

from fastapi import Request

from celebrate.actions import ActionContext
from celebrate.assistant import ContentAssistant, GeminiAssistant, StaticAssistant
from celebrate.config import Settings
from celebrate.db import DocumentStore, InMemoryDocumentStore, JsonFileDocumentStore
from celebrate.revalidate import LoggingInvalidator, PathInvalidator, WebhookInvalidator
from celebrate.storage import InMemoryStorageClient, StorageClient, create_storage_client

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> DocumentStore:
    if settings.use_in_memory_backends:
        return InMemoryDocumentStore()
    return JsonFileDocumentStore(settings.data_file)


def build_storage(settings: Settings) -> StorageClient:
    if settings.use_in_memory_backends:
        return InMemoryStorageClient()
    return create_storage_client(settings)


def build_assistant(settings: Settings) -> ContentAssistant:
    if settings.use_in_memory_backends:
        return StaticAssistant()
    if not settings.gemini_api_key:
        logger.warning(
            "GEMINI_API_KEY is not set; wishes will not be moderated and "
            "images get a generic hint."
        )
        return StaticAssistant()
    return GeminiAssistant(api_key=settings.gemini_api_key, model=settings.gemini_model)


def build_invalidator(settings: Settings) -> PathInvalidator:
    if settings.revalidate_endpoint:
        return WebhookInvalidator(
            endpoint=settings.revalidate_endpoint, secret=settings.revalidate_secret
        )
    return LoggingInvalidator()


def build_context(settings: Settings) -> ActionContext:
    """
    Build every collaborator from settings.

    Raises StorageConfigurationError when the selected storage backend is
    missing required settings.
    """
    return ActionContext(
        store=build_store(settings),
        storage=build_storage(settings),
        assistant=build_assistant(settings),
        invalidator=build_invalidator(settings),
        settings=settings,
    )


def get_context(request: Request) -> ActionContext:
    return request.app.state.context
