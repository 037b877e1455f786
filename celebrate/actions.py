"""
Request handlers behind every form on the site.

Each handler validates its raw input, performs side effects in a fixed order
(moderate, upload, caption, write the document, invalidate cached pages) and
returns a result with `success` and `message`. Handlers never raise: internal
errors are logged and reported with a generic message.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import ValidationError

from celebrate.assistant import DEFAULT_IMAGE_HINT, ContentAssistant
from celebrate.config import Settings
from celebrate.db import DocumentStore, DocumentStoreError
from celebrate.documents import DEFAULT_AUTHOR, MediaItem, Wish, slugify
from celebrate.revalidate import PathInvalidator
from celebrate.schemas import (
    ActionForm,
    ActionResponse,
    AddYearForm,
    AdminForm,
    DeleteAdminForm,
    DeleteEventForm,
    DeleteSocialPostForm,
    DeleteWishForm,
    DeleteYearForm,
    EventActionResponse,
    EventForm,
    LocalUpload,
    LoginForm,
    LoginResponse,
    MediaForm,
    MediaSource,
    SocialPostActionResponse,
    SocialPostForm,
    UpdateEventForm,
    WishActionResponse,
    WishForm,
)
from celebrate.storage import StorageClient, StorageUploadError, upload_file_to_storage

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."
EMPTY_SLUG_MESSAGE = "Event name must contain letters or digits."

F = TypeVar("F", bound=ActionForm)


@dataclass
class ActionContext:
    """Collaborators the handlers work with, built once at startup."""

    store: DocumentStore
    storage: StorageClient
    assistant: ContentAssistant
    invalidator: PathInvalidator
    settings: Settings


def _validate(form_cls: Type[F], data: Mapping[str, Any]) -> tuple[Optional[F], str]:
    try:
        return form_cls.model_validate(dict(data)), ""
    except ValidationError as exc:
        return None, form_cls.error_message(exc)


def _data_uri(upload: LocalUpload) -> str:
    encoded = base64.b64encode(upload.data).decode("ascii")
    return f"data:{upload.content_type or 'application/octet-stream'};base64,{encoded}"


def _event_page(year: int, slug: str) -> str:
    return f"/{year}/birthday/{slug}"


# --- wishes ---


def submit_wish(
    ctx: ActionContext,
    data: Mapping[str, Any],
    image: Optional[LocalUpload] = None,
) -> WishActionResponse:
    raw_author = data.get("author")
    author = str(raw_author) if raw_author and str(raw_author).strip() else DEFAULT_AUTHOR

    form, error = _validate(
        WishForm,
        {
            "author": author,
            "message": data.get("message"),
            "personSlug": data.get("personSlug"),
            "year": data.get("year"),
        },
    )
    if not form:
        return WishActionResponse(success=False, message=error)

    try:
        verdict = ctx.assistant.moderate(form.message)
        if not verdict.isAppropriate:
            reason = verdict.reason or "Content policy violation"
            return WishActionResponse(
                success=False,
                message=(
                    "Your message was flagged as inappropriate. "
                    f"Reason: {reason}. Please revise."
                ),
            )

        if ctx.store.get_event_by_slug(form.year, form.personSlug) is None:
            return WishActionResponse(success=False, message="Event not found.")

        image_url = None
        if image is not None and not image.is_empty:
            try:
                uploaded = upload_file_to_storage(
                    ctx.storage,
                    image.data,
                    image.filename,
                    image.content_type,
                    ctx.settings,
                )
            except StorageUploadError:
                return WishActionResponse(
                    success=False,
                    message="Failed to upload image. Please try again.",
                )
            image_url = uploaded.url

        wish = ctx.store.add_wish(
            form.year,
            form.personSlug,
            Wish(author=author, message=form.message, imageUrl=image_url),
        )
    except DocumentStoreError as exc:
        return WishActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error submitting wish")
        return WishActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate([_event_page(form.year, form.personSlug)])
    return WishActionResponse(
        success=True, message="Your wish has been posted!", newWish=wish
    )


def delete_wish(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(DeleteWishForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.delete_wish(form.year, form.personSlug, form.wishId)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error deleting wish")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate([_event_page(form.year, form.personSlug)])
    return ActionResponse(success=True, message="Wish deleted.")


# --- admins ---


def login(ctx: ActionContext, data: Mapping[str, Any]) -> LoginResponse:
    """
    Checks the credentials against the stored admins.

    Nothing is issued on success; the caller keeps its own "is admin" flag.
    """
    form, error = _validate(LoginForm, data)
    if not form:
        return LoginResponse(success=False, message=error)
    try:
        admin = ctx.store.find_admin(form.username, form.password)
    except Exception:
        logger.exception("Error during login")
        return LoginResponse(success=False, message=GENERIC_ERROR_MESSAGE)
    if not admin:
        return LoginResponse(success=False, message="Invalid username or password.")
    return LoginResponse(
        success=True, message="Login successful!", username=admin.username
    )


def add_admin(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(AdminForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.add_admin(form.username, form.password)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error adding admin")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin"])
    return ActionResponse(success=True, message=f"Admin {form.username} added.")


def delete_admin(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(DeleteAdminForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.delete_admin(form.username)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error deleting admin")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin"])
    return ActionResponse(success=True, message=f"Admin {form.username} deleted.")


# --- years ---


def add_year(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(AddYearForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.add_year(form.year)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error adding year")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin"])
    return ActionResponse(success=True, message=f"Year {form.year} added successfully.")


def delete_year(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(DeleteYearForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.delete_year(form.year)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error deleting year")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin"])
    return ActionResponse(
        success=True, message=f"Year {form.year} deleted successfully."
    )


# --- events ---


def add_event(ctx: ActionContext, data: Mapping[str, Any]) -> EventActionResponse:
    form, error = _validate(EventForm, data)
    if not form:
        return EventActionResponse(success=False, message=error)
    if not slugify(form.name):
        return EventActionResponse(success=False, message=EMPTY_SLUG_MESSAGE)
    try:
        slug = ctx.store.add_event(form.year, form.name, form.date, form.type)
    except DocumentStoreError as exc:
        return EventActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error adding event")
        return EventActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin", f"/{form.year}"])
    return EventActionResponse(success=True, message="Event added!", newSlug=slug)


def update_event(ctx: ActionContext, data: Mapping[str, Any]) -> EventActionResponse:
    form, error = _validate(UpdateEventForm, data)
    if not form:
        return EventActionResponse(success=False, message=error)
    if not slugify(form.name):
        return EventActionResponse(success=False, message=EMPTY_SLUG_MESSAGE)
    try:
        new_slug = ctx.store.update_event(
            form.year, form.originalSlug, form.name, form.date, form.type
        )
    except DocumentStoreError as exc:
        return EventActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error updating event")
        return EventActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    paths = ["/admin", f"/{form.year}", _event_page(form.year, form.originalSlug)]
    if new_slug != form.originalSlug:
        paths.append(_event_page(form.year, new_slug))
    ctx.invalidator.invalidate(paths)
    return EventActionResponse(
        success=True, message="Event updated!", updatedSlug=new_slug
    )


def delete_event(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(DeleteEventForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.delete_event(form.year, form.eventSlug)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error deleting event")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/admin", f"/{form.year}"])
    return ActionResponse(success=True, message="Event deleted.")


# --- media ---


def _store_media(
    ctx: ActionContext, source: MediaSource, media_type: str
) -> MediaItem:
    if not isinstance(source, LocalUpload):
        return MediaItem(type=media_type, url=source.url, hint=media_type)

    uploaded = upload_file_to_storage(
        ctx.storage, source.data, source.filename, source.content_type, ctx.settings
    )
    if media_type == "image":
        hint = ctx.assistant.caption(_data_uri(source)) or DEFAULT_IMAGE_HINT
    else:
        hint = "video"
    return MediaItem(type=media_type, url=uploaded.url, hint=hint)


def add_media_to_event(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    """
    Replaces an event's gallery: existing media not listed in
    `existingMediaIds` is dropped and the new entries are appended.
    """
    form, error = _validate(MediaForm, data)
    if not form:
        return ActionResponse(success=False, message=error)

    try:
        if ctx.store.get_event_by_slug(form.year, form.eventSlug) is None:
            return ActionResponse(success=False, message="Event not found.")
        new_items = [
            _store_media(ctx, source, media_type)
            for source, media_type in zip(form.media, form.mediaTypes)
        ]
        ctx.store.set_event_media(
            form.year, form.eventSlug, new_items, form.existingMediaIds
        )
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except StorageUploadError as exc:
        return ActionResponse(success=False, message=str(exc))
    except Exception:
        logger.exception("Error adding media")
        return ActionResponse(
            success=False, message="An error occurred while processing media."
        )

    ctx.invalidator.invalidate(
        [
            _event_page(form.year, form.eventSlug),
            f"/{form.year}/event/{form.eventSlug}",
        ]
    )
    return ActionResponse(success=True, message="Media updated successfully.")


# --- social posts ---


def add_social_post(
    ctx: ActionContext, data: Mapping[str, Any]
) -> SocialPostActionResponse:
    payload = dict(data)
    if not payload.get("imageUrl"):
        payload.pop("imageUrl", None)
    form, error = _validate(SocialPostForm, payload)
    if not form:
        return SocialPostActionResponse(success=False, message=error)
    try:
        post = ctx.store.add_social_post(
            form.platform,
            form.title,
            form.description,
            str(form.url),
            str(form.imageUrl) if form.imageUrl else None,
        )
    except DocumentStoreError as exc:
        return SocialPostActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error adding social post")
        return SocialPostActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/", "/admin"])
    return SocialPostActionResponse(
        success=True, message="Social post added successfully!", newPost=post
    )


def delete_social_post(ctx: ActionContext, data: Mapping[str, Any]) -> ActionResponse:
    form, error = _validate(DeleteSocialPostForm, data)
    if not form:
        return ActionResponse(success=False, message=error)
    try:
        ctx.store.delete_social_post(form.postId)
    except DocumentStoreError as exc:
        return ActionResponse(success=False, message=exc.message)
    except Exception:
        logger.exception("Error deleting social post")
        return ActionResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    ctx.invalidator.invalidate(["/", "/admin"])
    return ActionResponse(success=True, message="Social post deleted.")
