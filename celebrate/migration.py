"""
Backup, restore, and moving local uploads to cloud storage.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from celebrate.db import DocumentStore, write_json_atomic
from celebrate.storage import StorageClient

logger = logging.getLogger(__name__)

MIGRATED_FOLDER = "migrated"

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
}


class MigrationError(Exception):
    pass


@dataclass
class MigrationResult:
    success: bool = False
    migrated: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    backup_path: Optional[str] = None


def get_mime_type(filename: str) -> str:
    return MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def backup_file_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return "db-backup-" + stamp.replace(":", "-").replace(".", "-") + ".json"


def backup_database(store: DocumentStore, backups_dir: str | os.PathLike) -> Path:
    """
    Snapshot the stored payload, exactly as it is on disk, into a
    timestamped JSON file.
    """
    try:
        backup_path = Path(backups_dir) / backup_file_name()
        write_json_atomic(backup_path, store.read_raw())
    except (OSError, TypeError, ValueError) as exc:
        raise MigrationError(f"Failed to create backup: {exc}") from exc
    logger.info("Database backup written to %s", backup_path)
    return backup_path


def restore_database(store: DocumentStore, backup_path: str | os.PathLike) -> None:
    """Overwrite the live document with the contents of a backup file."""
    try:
        with open(backup_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as exc:
        raise MigrationError(f"Failed to restore backup: {exc}") from exc
    store.write_raw(payload)
    logger.info("Database restored from %s", backup_path)


def local_url_variants(file_name: str, local_base_url: str = "") -> list[str]:
    """The URLs a local upload may have been stored under."""
    urls = [f"/uploads/{file_name}"]
    base = (local_base_url or "").rstrip("/")
    if base:
        urls.append(f"{base}/uploads/{file_name}")
    return urls


def migrate_local_files_to_cloud(
    store: DocumentStore,
    storage: StorageClient,
    uploads_dir: str | os.PathLike,
    backups_dir: str | os.PathLike,
    local_base_url: str = "",
) -> MigrationResult:
    """
    Upload every file in the local uploads directory and point stored URLs
    at the new locations.

    A backup is written first and a failed backup aborts the run. Files are
    uploaded one at a time; a failed file is counted and reported but does
    not stop the batch. The document is rewritten once, after all uploads.
    """
    result = MigrationResult()
    result.backup_path = str(backup_database(store, backups_dir))

    uploads = Path(uploads_dir)
    if not uploads.is_dir():
        result.errors.append("Uploads directory does not exist")
        return result

    url_mapping: dict[str, str] = {}
    for path in sorted(uploads.iterdir()):
        if not path.is_file():
            continue
        try:
            uploaded = storage.upload(
                path.read_bytes(),
                path.name,
                get_mime_type(path.name),
                folder=MIGRATED_FOLDER,
            )
        except Exception as exc:
            logger.error("Failed to migrate %s: %s", path.name, exc)
            result.failed += 1
            result.errors.append(f"Failed to migrate {path.name}: {exc}")
            continue
        for old_url in local_url_variants(path.name, local_base_url):
            url_mapping[old_url] = uploaded.url
        result.migrated += 1

    # Files already uploaded stay where they are if this write fails; the
    # backup written above is the recovery path.
    rewritten = store.replace_urls(url_mapping)
    logger.info(
        "Migrated %d files (%d failed), rewrote %d references",
        result.migrated,
        result.failed,
        rewritten,
    )
    result.success = True
    return result
