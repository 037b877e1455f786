"""
HTTP routes for the celebration site API.

Action endpoints accept JSON, urlencoded or multipart bodies. Fields named
with a trailing "[]" (e.g. "media[]") are collected into lists.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from celebrate import actions
from celebrate.actions import ActionContext
from celebrate.dependencies import get_context
from celebrate.documents import Event
from celebrate.migration import backup_database, migrate_local_files_to_cloud
from celebrate.schemas import (
    ActionResponse,
    AdminsResponse,
    AdminSummary,
    EventActionResponse,
    EventsResponse,
    LocalUpload,
    LoginResponse,
    MigrateRequest,
    MigrationDetails,
    MigrationResponse,
    RemoteRef,
    SocialPostActionResponse,
    SocialPostsResponse,
    StorageStatusResponse,
    StorageTestResponse,
    WishActionResponse,
    YearsResponse,
)
from celebrate.storage import (
    LocalStorageClient,
    StorageUploadError,
    storage_status as build_storage_status,
    upload_file_to_storage,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _form_value(value: Any) -> Any:
    if isinstance(value, UploadFile):
        data = await value.read()
        return LocalUpload(
            data=data,
            filename=value.filename or "",
            content_type=value.content_type or "application/octet-stream",
        )
    return value


async def read_payload(request: Request) -> dict[str, Any]:
    """Decode a JSON or form body into a plain dict."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    form = await request.form()
    payload: dict[str, Any] = {}
    for key in form.keys():
        values = [await _form_value(v) for v in form.getlist(key)]
        if key.endswith("[]"):
            payload[key[:-2]] = values
        elif len(values) > 1:
            payload[key] = values
        else:
            payload[key] = values[0]
    return payload


def _as_media_sources(values: Any) -> list[Any]:
    if not isinstance(values, list):
        values = [values]
    return [RemoteRef(url=v) if isinstance(v, str) else v for v in values]


def _as_list(values: Any) -> list[Any]:
    if values is None:
        return []
    return values if isinstance(values, list) else [values]


# --- reads ---


@router.get("/years", response_model=YearsResponse)
def list_years(ctx: ActionContext = Depends(get_context)):
    return YearsResponse(years=ctx.store.get_years())


@router.get("/years/{year}/events", response_model=EventsResponse)
def list_events(year: int, ctx: ActionContext = Depends(get_context)):
    return EventsResponse(year=year, events=ctx.store.get_events_by_year(year))


@router.get(
    "/years/{year}/events/{slug}",
    response_model=Event,
    response_model_exclude_none=True,
)
def get_event(year: int, slug: str, ctx: ActionContext = Depends(get_context)):
    event = ctx.store.get_event_by_slug(year, slug)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/admins", response_model=AdminsResponse)
def list_admins(ctx: ActionContext = Depends(get_context)):
    return AdminsResponse(
        admins=[AdminSummary(username=u) for u in ctx.store.get_admins()]
    )


@router.get(
    "/social-posts", response_model=SocialPostsResponse, response_model_exclude_none=True
)
def list_social_posts(ctx: ActionContext = Depends(get_context)):
    return SocialPostsResponse(posts=ctx.store.get_social_posts())


@router.get("/storage-status", response_model=StorageStatusResponse)
def storage_status(ctx: ActionContext = Depends(get_context)):
    return StorageStatusResponse(**build_storage_status(ctx.settings))


# --- actions ---


@router.post(
    "/wishes", response_model=WishActionResponse, response_model_exclude_none=True
)
async def submit_wish(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    image = payload.pop("image", None)
    if not isinstance(image, LocalUpload):
        image = None
    return await run_in_threadpool(actions.submit_wish, ctx, payload, image)


@router.post("/wishes/delete", response_model=ActionResponse)
async def delete_wish(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.delete_wish, ctx, payload)


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
async def login(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.login, ctx, payload)


@router.post("/years", response_model=ActionResponse)
async def add_year(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.add_year, ctx, payload)


@router.post("/years/delete", response_model=ActionResponse)
async def delete_year(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.delete_year, ctx, payload)


@router.post(
    "/events", response_model=EventActionResponse, response_model_exclude_none=True
)
async def add_event(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.add_event, ctx, payload)


@router.post(
    "/events/update",
    response_model=EventActionResponse,
    response_model_exclude_none=True,
)
async def update_event(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.update_event, ctx, payload)


@router.post("/events/delete", response_model=ActionResponse)
async def delete_event(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.delete_event, ctx, payload)


@router.post("/media", response_model=ActionResponse)
async def add_media(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    payload["media"] = _as_media_sources(payload.get("media", []))
    payload["mediaTypes"] = _as_list(payload.get("mediaTypes"))
    payload["existingMediaIds"] = _as_list(payload.get("existingMediaIds"))
    return await run_in_threadpool(actions.add_media_to_event, ctx, payload)


@router.post("/admins", response_model=ActionResponse)
async def add_admin(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.add_admin, ctx, payload)


@router.post("/admins/delete", response_model=ActionResponse)
async def delete_admin(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.delete_admin, ctx, payload)


@router.post(
    "/social-posts",
    response_model=SocialPostActionResponse,
    response_model_exclude_none=True,
)
async def add_social_post(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.add_social_post, ctx, payload)


@router.post("/social-posts/delete", response_model=ActionResponse)
async def delete_social_post(
    request: Request, ctx: ActionContext = Depends(get_context)
):
    payload = await read_payload(request)
    return await run_in_threadpool(actions.delete_social_post, ctx, payload)


# --- storage maintenance ---


@router.post(
    "/migrate", response_model=MigrationResponse, response_model_exclude_none=True
)
async def migrate(request: Request, ctx: ActionContext = Depends(get_context)):
    """
    Run a maintenance action: "backup" snapshots the document, "migrate"
    snapshots it and then moves local uploads to the cloud backend.
    """
    payload = await read_payload(request)
    try:
        migrate_request = MigrateRequest.model_validate(payload)
    except ValidationError:
        return JSONResponse(
            status_code=400, content={"success": False, "message": "Invalid action"}
        )

    settings = ctx.settings
    try:
        if migrate_request.action == "backup":
            backup_path = await run_in_threadpool(
                backup_database, ctx.store, settings.backups_dir
            )
            return MigrationResponse(
                success=True,
                message="Backup created successfully",
                backupPath=str(backup_path),
            )

        if isinstance(ctx.storage, LocalStorageClient):
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "message": (
                        "Migration needs a cloud storage backend. "
                        "Set STORAGE_TYPE to s3 or cloudinary."
                    ),
                },
            )

        result = await run_in_threadpool(
            migrate_local_files_to_cloud,
            ctx.store,
            ctx.storage,
            settings.uploads_dir,
            settings.backups_dir,
            settings.public_base_url,
        )
    except Exception as exc:
        logger.exception("Migration API error")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Migration failed", "error": str(exc)},
        )

    message = (
        f"Migration completed. Migrated {result.migrated} files, {result.failed} failed."
        if result.success
        else "Migration failed."
    )
    return MigrationResponse(
        success=result.success,
        message=message,
        details=MigrationDetails(
            success=result.success,
            migrated=result.migrated,
            failed=result.failed,
            errors=result.errors,
        ),
        backupPath=result.backup_path,
    )


@router.post(
    "/test-storage",
    response_model=StorageTestResponse,
    response_model_exclude_none=True,
)
async def test_storage(request: Request, ctx: ActionContext = Depends(get_context)):
    payload = await read_payload(request)
    upload = payload.get("file")
    if not isinstance(upload, LocalUpload):
        return JSONResponse(
            status_code=400, content={"success": False, "message": "No file provided"}
        )
    try:
        result = await run_in_threadpool(
            upload_file_to_storage,
            ctx.storage,
            upload.data,
            upload.filename,
            upload.content_type,
            ctx.settings,
            "test",
        )
    except StorageUploadError as exc:
        return JSONResponse(
            status_code=500, content={"success": False, "message": str(exc)}
        )
    return StorageTestResponse(
        success=True,
        message="File uploaded successfully",
        url=result.url,
        key=result.key,
    )
