"""
Records stored in the JSON document.

Field names are camelCase because they are written to (and read back from)
the JSON file verbatim.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EventType = Literal["birthday", "event"]
MediaType = Literal["image", "video"]
SocialPlatform = Literal["instagram", "facebook", "twitter", "youtube", "tiktok"]

DEFAULT_AUTHOR = "Anonymous"


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """ISO-8601 timestamp with millisecond precision and a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class MediaItem(_Record):
    id: str = Field(default_factory=new_id)
    type: MediaType
    url: str
    hint: str = ""


class Wish(_Record):
    id: str = Field(default_factory=new_id)
    author: str = DEFAULT_AUTHOR
    message: str
    imageUrl: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now_iso)
    isAppropriate: bool = True


class EventSummary(_Record):
    slug: str
    name: str
    date: str
    type: EventType


class Event(EventSummary):
    media: list[MediaItem] = Field(default_factory=list)
    wishes: list[Wish] = Field(default_factory=list)

    def summary(self) -> EventSummary:
        return EventSummary(
            slug=self.slug, name=self.name, date=self.date, type=self.type
        )


class YearData(_Record):
    year: int
    events: list[Event] = Field(default_factory=list)

    def find_event(self, slug: str) -> Optional[Event]:
        for event in self.events:
            if event.slug == slug:
                return event
        return None


class AdminUser(_Record):
    username: str
    password: Optional[str] = None


class SocialPost(_Record):
    id: str = Field(default_factory=new_id)
    platform: SocialPlatform
    title: str
    description: str
    url: str
    imageUrl: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now_iso)
    isActive: bool = True


class Document(_Record):
    years: list[YearData] = Field(default_factory=list)
    admins: list[AdminUser] = Field(default_factory=list)
    socialPosts: list[SocialPost] = Field(default_factory=list)

    def find_year(self, year: int) -> Optional[YearData]:
        for year_data in self.years:
            if year_data.year == year:
                return year_data
        return None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
