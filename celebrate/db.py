"""
Document store backed by a single JSON file, plus an in-memory test double.

Every mutation reads the whole document, changes it, and writes the whole
document back. A process-wide lock serialises those read-modify-write cycles
so two requests can no longer overwrite each other's changes.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from celebrate.documents import (
    AdminUser,
    Document,
    Event,
    EventSummary,
    EventType,
    MediaItem,
    SocialPlatform,
    SocialPost,
    Wish,
    YearData,
    slugify,
)
from celebrate.placeholders import find_placeholder

logger = logging.getLogger(__name__)

LOCAL_UPLOADS_PREFIX = "/uploads/"


class DocumentStoreError(Exception):
    """Base class for lookups and mutations that cannot be applied."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DocumentStoreError):
    pass


class AlreadyExistsError(DocumentStoreError):
    pass


class UnreadableDocumentError(DocumentStoreError):
    """The stored file has records that do not fit the schema; writes are refused."""


def populate_media(media: list[MediaItem]) -> list[MediaItem]:
    """Resolve placeholder media and drop items that have no usable URL."""
    populated = []
    for item in media:
        url = item.url or ""
        if url.startswith(("http://", "https://")):
            populated.append(item)
            continue
        if url.startswith("data:") or url.startswith(LOCAL_UPLOADS_PREFIX):
            populated.append(item)
            continue
        placeholder = find_placeholder(item.id)
        if placeholder and placeholder.image_url:
            populated.append(
                item.model_copy(
                    update={
                        "url": placeholder.image_url,
                        "hint": placeholder.image_hint,
                    }
                )
            )
    return populated


def _record(model, data, label: str):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Skipping unreadable %s: %s", label, exc)
        return None


def _records(model, items, label: str) -> list:
    if not isinstance(items, list):
        return []
    return [r for r in (_record(model, item, label) for item in items) if r is not None]


def _dicts(items) -> list[dict]:
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def salvage_document(raw: dict) -> Document:
    """
    Validate record by record, keeping everything that fits the schema.

    Used for reads when the whole document fails validation, so one odd
    record does not hide the rest of the site.
    """
    years = []
    for raw_year in _dicts(raw.get("years")):
        events = []
        for raw_event in _dicts(raw_year.get("events")):
            event = _record(Event, {**raw_event, "media": [], "wishes": []}, "event")
            if event is None:
                continue
            event.media = _records(MediaItem, raw_event.get("media"), "media item")
            event.wishes = _records(Wish, raw_event.get("wishes"), "wish")
            events.append(event)
        year_data = _record(YearData, {**raw_year, "events": []}, "year")
        if year_data is not None:
            year_data.events = events
            years.append(year_data)
    return Document(
        years=years,
        admins=_records(AdminUser, raw.get("admins"), "admin"),
        socialPosts=_records(SocialPost, raw.get("socialPosts"), "social post"),
    )


def write_json_atomic(path: str | os.PathLike, payload) -> None:
    """Write to a temp file in the same directory, then swap it into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    fd = None
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=str(path.parent), prefix=path.name + ".", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fd = None
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if fd is not None:
            with suppress(OSError):
                os.close(fd)
        if tmp_name and os.path.exists(tmp_name):
            with suppress(OSError):
                os.remove(tmp_name)


def _posted_at(post: SocialPost) -> datetime:
    try:
        posted = datetime.fromisoformat(post.createdAt.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=timezone.utc)
    return posted


class DocumentStore:
    """
    Queries and mutations over the whole document.

    Subclasses only decide where the raw JSON lives.
    """

    def __init__(self):
        self._lock = threading.RLock()

    # --- raw persistence ---

    def _load_raw(self) -> Optional[dict]:
        raise NotImplementedError

    def _save_raw(self, payload: dict) -> None:
        raise NotImplementedError

    def _parse(self) -> tuple[Document, bool]:
        """The stored document, and whether every record in it was readable."""
        try:
            raw = self._load_raw()
        except (OSError, ValueError) as exc:
            logger.warning("Could not read document store, starting empty: %s", exc)
            return Document(), True
        if not raw:
            return Document(), True
        if not isinstance(raw, dict):
            logger.warning("Document store is not a JSON object, starting empty")
            return Document(), True
        try:
            return Document.model_validate(raw), True
        except ValidationError as exc:
            logger.warning("Document store has records with an unexpected shape: %s", exc)
            return salvage_document(raw), False

    def read(self) -> Document:
        return self._parse()[0]

    def read_raw(self) -> dict:
        """The stored payload exactly as loaded, or an empty document."""
        try:
            raw = self._load_raw()
        except (OSError, ValueError):
            raw = None
        return raw if isinstance(raw, dict) else Document().to_json()

    def write(self, document: Document) -> None:
        self._save_raw(document.to_json())

    def write_raw(self, payload: dict) -> None:
        """Overwrite the live document with an already-serialised payload."""
        with self._lock:
            self._save_raw(payload)

    @contextmanager
    def transaction(self) -> Iterator[Document]:
        """
        Hold the writer lock for a read-modify-write cycle.

        The document is written back only when the block exits cleanly.
        Raises UnreadableDocumentError when some stored records could not be
        read, since writing back would drop them.
        """
        with self._lock:
            document, complete = self._parse()
            if not complete:
                raise UnreadableDocumentError(
                    "The data file has records that could not be read. "
                    "Fix it or restore a backup before making changes."
                )
            yield document
            self.write(document)

    def _require_year(self, document: Document, year: int) -> YearData:
        year_data = document.find_year(year)
        if not year_data:
            raise NotFoundError("Year not found.")
        return year_data

    def _require_event(self, document: Document, year: int, slug: str) -> Event:
        event = self._require_year(document, year).find_event(slug)
        if not event:
            raise NotFoundError("Event not found.")
        return event

    # --- years ---

    def get_years(self) -> list[int]:
        return sorted((y.year for y in self.read().years), reverse=True)

    def add_year(self, year: int) -> None:
        with self.transaction() as document:
            if document.find_year(year):
                raise AlreadyExistsError("Year already exists.")
            document.years.append(YearData(year=year))
            document.years.sort(key=lambda y: y.year)

    def delete_year(self, year: int) -> None:
        with self.transaction() as document:
            remaining = [y for y in document.years if y.year != year]
            if len(remaining) == len(document.years):
                raise NotFoundError(f"Year {year} not found.")
            document.years = remaining

    # --- events ---

    def get_events_by_year(self, year: int) -> list[EventSummary]:
        year_data = self.read().find_year(year)
        if not year_data:
            return []
        return [event.summary() for event in year_data.events]

    def get_event_by_slug(self, year: int, slug: str) -> Optional[Event]:
        year_data = self.read().find_year(year)
        if not year_data:
            return None
        event = year_data.find_event(slug)
        if not event:
            return None
        return event.model_copy(
            update={
                "media": populate_media(event.media),
                "wishes": list(reversed(event.wishes)),
            }
        )

    def add_event(self, year: int, name: str, date: str, type: EventType) -> str:
        with self.transaction() as document:
            year_data = self._require_year(document, year)
            slug = slugify(name)
            if year_data.find_event(slug):
                raise AlreadyExistsError(
                    "An event with this name already exists for this year. "
                    "Please choose a different name."
                )
            year_data.events.append(Event(slug=slug, name=name, date=date, type=type))
            return slug

    def update_event(
        self,
        year: int,
        original_slug: str,
        name: str,
        date: str,
        type: EventType,
    ) -> str:
        with self.transaction() as document:
            year_data = self._require_year(document, year)
            event = year_data.find_event(original_slug)
            if not event:
                raise NotFoundError("Event not found.")
            new_slug = slugify(name)
            if new_slug != original_slug and year_data.find_event(new_slug):
                raise AlreadyExistsError(
                    "Another event with this name already exists. "
                    "Please choose a different name."
                )
            event.slug = new_slug
            event.name = name
            event.date = date
            event.type = type
            return new_slug

    def delete_event(self, year: int, slug: str) -> None:
        with self.transaction() as document:
            year_data = self._require_year(document, year)
            remaining = [e for e in year_data.events if e.slug != slug]
            if len(remaining) == len(year_data.events):
                raise NotFoundError("Event not found.")
            year_data.events = remaining

    # --- wishes ---

    def add_wish(self, year: int, slug: str, wish: Wish) -> Wish:
        with self.transaction() as document:
            event = self._require_event(document, year, slug)
            stored = wish.model_copy(update={"isAppropriate": True})
            event.wishes.append(stored)
            return stored

    def delete_wish(self, year: int, slug: str, wish_id: str) -> None:
        with self.transaction() as document:
            event = self._require_event(document, year, slug)
            remaining = [w for w in event.wishes if w.id != wish_id]
            if len(remaining) == len(event.wishes):
                raise NotFoundError("Wish not found.")
            event.wishes = remaining

    # --- media ---

    def set_event_media(
        self,
        year: int,
        slug: str,
        new_items: list[MediaItem],
        existing_media_ids: list[str],
    ) -> list[MediaItem]:
        """Keep only the listed existing media, then append the new items."""
        keep = set(existing_media_ids)
        with self.transaction() as document:
            event = self._require_event(document, year, slug)
            event.media = [m for m in event.media if m.id in keep] + list(new_items)
            return list(event.media)

    def replace_urls(self, mapping: dict[str, str]) -> int:
        """Rewrite media and wish image URLs; returns how many were changed."""
        if not mapping:
            return 0
        replaced = 0
        with self.transaction() as document:
            for year_data in document.years:
                for event in year_data.events:
                    for item in event.media:
                        if item.url in mapping:
                            item.url = mapping[item.url]
                            replaced += 1
                    for wish in event.wishes:
                        if wish.imageUrl and wish.imageUrl in mapping:
                            wish.imageUrl = mapping[wish.imageUrl]
                            replaced += 1
        return replaced

    # --- admins ---

    def get_admins(self) -> list[str]:
        return [admin.username for admin in self.read().admins]

    def find_admin(self, username: str, password: str) -> Optional[AdminUser]:
        # Plaintext comparison, kept as the site has always worked.
        for admin in self.read().admins:
            if admin.username == username and admin.password == password:
                return admin
        return None

    def add_admin(self, username: str, password: Optional[str]) -> None:
        with self.transaction() as document:
            if any(a.username == username for a in document.admins):
                raise AlreadyExistsError("Admin username already exists.")
            document.admins.append(AdminUser(username=username, password=password))

    def delete_admin(self, username: str) -> None:
        with self.transaction() as document:
            remaining = [a for a in document.admins if a.username != username]
            if len(remaining) == len(document.admins):
                raise NotFoundError("Admin not found.")
            document.admins = remaining

    # --- social posts ---

    def get_social_posts(self) -> list[SocialPost]:
        active = [post for post in self.read().socialPosts if post.isActive]
        return sorted(active, key=_posted_at, reverse=True)

    def add_social_post(
        self,
        platform: SocialPlatform,
        title: str,
        description: str,
        url: str,
        image_url: Optional[str] = None,
    ) -> SocialPost:
        post = SocialPost(
            platform=platform,
            title=title,
            description=description,
            url=url,
            imageUrl=image_url,
        )
        with self.transaction() as document:
            document.socialPosts.append(post)
        return post

    def delete_social_post(self, post_id: str) -> None:
        with self.transaction() as document:
            remaining = [p for p in document.socialPosts if p.id != post_id]
            if len(remaining) == len(document.socialPosts):
                raise NotFoundError("Post not found.")
            document.socialPosts = remaining


class JsonFileDocumentStore(DocumentStore):
    """The production store: one pretty-printed JSON file on disk."""

    def __init__(self, path: str | os.PathLike):
        super().__init__()
        self.path = Path(path)

    def _load_raw(self) -> Optional[dict]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save_raw(self, payload: dict) -> None:
        write_json_atomic(self.path, payload)


class InMemoryDocumentStore(DocumentStore):
    """Simple in-memory store for development and tests."""

    def __init__(self, initial: Optional[dict] = None):
        super().__init__()
        self.payload: Optional[dict] = copy.deepcopy(initial)

    def _load_raw(self) -> Optional[dict]:
        return copy.deepcopy(self.payload)

    def _save_raw(self, payload: dict) -> None:
        self.payload = copy.deepcopy(payload)

