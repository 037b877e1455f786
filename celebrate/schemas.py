"""
Pydantic schemas for action input and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import AnyUrl, BaseModel, Field, ValidationError, model_validator

from celebrate.documents import (
    EventSummary,
    EventType,
    MediaType,
    SocialPlatform,
    SocialPost,
    Wish,
)


@dataclass(frozen=True)
class LocalUpload:
    """File bytes received with the request, still to be stored."""

    data: bytes
    filename: str
    content_type: str

    @property
    def is_empty(self) -> bool:
        return not self.data


@dataclass(frozen=True)
class RemoteRef:
    """Media that already lives at a public URL."""

    url: str


MediaSource = Union[LocalUpload, RemoteRef]


class ActionForm(BaseModel):
    """
    Base for action input. `messages` maps a field to the message shown when
    that field is the first invalid one; `invalid_message` covers the rest.
    """

    messages: ClassVar[dict[str, str]] = {}
    invalid_message: ClassVar[str] = "Invalid form data. Please check your inputs."

    @classmethod
    def error_message(cls, exc: ValidationError) -> str:
        errors = exc.errors()
        if errors and errors[0].get("loc"):
            return cls.messages.get(str(errors[0]["loc"][0]), cls.invalid_message)
        return cls.invalid_message


class WishForm(ActionForm):
    author: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1, max_length=500)
    personSlug: str
    year: int


class DeleteWishForm(ActionForm):
    invalid_message: ClassVar[str] = "Missing required fields."

    wishId: str = Field(..., min_length=1)
    personSlug: str = Field(..., min_length=1)
    year: int


class LoginForm(ActionForm):
    invalid_message: ClassVar[str] = "Both username and password are required."

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AddYearForm(ActionForm):
    messages: ClassVar[dict[str, str]] = {"year": "Year must be a valid year."}

    year: int = Field(..., ge=1900)


class DeleteYearForm(ActionForm):
    invalid_message: ClassVar[str] = "Invalid year provided."

    year: int


class EventForm(ActionForm):
    messages: ClassVar[dict[str, str]] = {
        "year": "Year must be a number.",
        "name": "Name is required.",
        "date": "Date is required.",
        "type": "Type must be either 'birthday' or 'event'.",
    }

    year: int
    name: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    type: EventType


class UpdateEventForm(EventForm):
    messages: ClassVar[dict[str, str]] = {
        **EventForm.messages,
        "originalSlug": "Original event is required.",
    }

    originalSlug: str = Field(..., min_length=1)


class DeleteEventForm(ActionForm):
    invalid_message: ClassVar[str] = "Invalid data for deleting event."

    year: int
    eventSlug: str = Field(..., min_length=1)


class MediaForm(ActionForm):
    invalid_message: ClassVar[str] = "Invalid data."

    year: int
    eventSlug: str = Field(..., min_length=1)
    media: list[Any] = Field(default_factory=list)
    mediaTypes: list[MediaType] = Field(default_factory=list)
    existingMediaIds: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _media_matches_types(self):
        if len(self.media) != len(self.mediaTypes):
            raise ValueError("Every media entry needs a media type")
        for source in self.media:
            if not isinstance(source, (LocalUpload, RemoteRef)):
                raise ValueError("Unsupported media entry")
            if isinstance(source, RemoteRef) and not source.url.startswith(
                ("http://", "https://")
            ):
                raise ValueError("Remote media must be an http(s) URL")
        return self


class AdminForm(ActionForm):
    messages: ClassVar[dict[str, str]] = {
        "username": "Username is required",
        "password": "Password must be at least 6 characters",
    }

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


class DeleteAdminForm(ActionForm):
    invalid_message: ClassVar[str] = "Invalid username."

    username: str = Field(..., min_length=1)


class SocialPostForm(ActionForm):
    platform: SocialPlatform
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    url: AnyUrl
    imageUrl: Optional[AnyUrl] = None


class DeleteSocialPostForm(ActionForm):
    invalid_message: ClassVar[str] = "Post ID is required."

    postId: str = Field(..., min_length=1)


class MigrateRequest(BaseModel):
    action: Literal["migrate", "backup"]


class ActionResponse(BaseModel):
    success: bool
    message: str


class WishActionResponse(ActionResponse):
    newWish: Optional[Wish] = None


class EventActionResponse(ActionResponse):
    newSlug: Optional[str] = None
    updatedSlug: Optional[str] = None


class LoginResponse(ActionResponse):
    username: Optional[str] = None


class SocialPostActionResponse(ActionResponse):
    newPost: Optional[SocialPost] = None


class MigrationDetails(BaseModel):
    success: bool
    migrated: int
    failed: int
    errors: list[str]


class MigrationResponse(ActionResponse):
    details: Optional[MigrationDetails] = None
    backupPath: Optional[str] = None


class StorageEnvironment(BaseModel):
    isProduction: bool
    isHosted: bool
    platform: str


class StorageStatusResponse(BaseModel):
    type: str
    configured: bool
    error: Optional[str] = None
    environment: StorageEnvironment


class StorageTestResponse(ActionResponse):
    url: Optional[str] = None
    key: Optional[str] = None


class YearsResponse(BaseModel):
    years: list[int]


class EventsResponse(BaseModel):
    year: int
    events: list[EventSummary]


class AdminSummary(BaseModel):
    username: str


class AdminsResponse(BaseModel):
    admins: list[AdminSummary]


class SocialPostsResponse(BaseModel):
    posts: list[SocialPost]
