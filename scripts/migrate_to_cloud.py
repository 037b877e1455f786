"""
Move files from the local uploads directory to cloud storage.

Set STORAGE_TYPE to s3 or cloudinary (plus that backend's credentials)
before running. A backup of the document is always written first.

Usage:
  python scripts/migrate_to_cloud.py
  python scripts/migrate_to_cloud.py --backup-only
  python scripts/migrate_to_cloud.py --restore backups/db-backup-<timestamp>.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from celebrate.config import get_settings
from celebrate.db import DocumentStoreError
from celebrate.dependencies import build_store
from celebrate.migration import (
    MigrationError,
    backup_database,
    migrate_local_files_to_cloud,
    restore_database,
)
from celebrate.storage import StorageConfigurationError, create_storage_client

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = {
    "s3": ("aws_access_key_id", "aws_secret_access_key", "aws_s3_bucket_name"),
    "cloudinary": (
        "cloudinary_cloud_name",
        "cloudinary_api_key",
        "cloudinary_api_secret",
    ),
}


def missing_settings(settings) -> list[str]:
    required = REQUIRED_SETTINGS.get(settings.storage_type, ())
    return [name.upper() for name in required if not getattr(settings, name)]


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate local uploads to cloud storage")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--backup-only",
        action="store_true",
        help="Write a backup of the document and exit",
    )
    group.add_argument(
        "--restore",
        metavar="BACKUP_PATH",
        help="Overwrite the document with the given backup file",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    settings = get_settings()
    store = build_store(settings)

    try:
        if args.restore:
            restore_database(store, args.restore)
            logger.info("Restored document from %s", args.restore)
            return 0
        if args.backup_only:
            logger.info("Backup created: %s", backup_database(store, settings.backups_dir))
            return 0
    except MigrationError as exc:
        logger.error("%s", exc)
        return 1

    if settings.storage_type == "local":
        logger.error("STORAGE_TYPE must be s3 or cloudinary to migrate local files")
        return 1
    missing = missing_settings(settings)
    if missing:
        logger.error(
            "Missing required %s settings: %s", settings.storage_type, ", ".join(missing)
        )
        return 1

    try:
        storage = create_storage_client(settings)
        result = migrate_local_files_to_cloud(
            store,
            storage,
            settings.uploads_dir,
            settings.backups_dir,
            settings.public_base_url,
        )
    except (StorageConfigurationError, MigrationError, DocumentStoreError) as exc:
        logger.error("Migration failed: %s", exc)
        return 1

    logger.info("Backup created: %s", result.backup_path)
    for error in result.errors:
        logger.warning("  - %s", error)
    if not result.success:
        logger.error("Migration failed")
        return 1
    logger.info("Migrated: %d files, failed: %d files", result.migrated, result.failed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
