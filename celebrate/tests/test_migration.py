import json
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from unittest import mock

from celebrate.db import InMemoryDocumentStore
from celebrate.documents import MediaItem, Wish
from celebrate.migration import (
    MigrationError,
    backup_database,
    backup_file_name,
    get_mime_type,
    migrate_local_files_to_cloud,
    restore_database,
)
from celebrate.storage import InMemoryStorageClient


class BackupTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.backups_dir = os.path.join(self.tmpdir, "backups")
        self.store = InMemoryDocumentStore()
        self.store.add_year(2024)
        self.store.add_event(2024, "Alice", "2024-05-01", "birthday")
        self.store.add_wish(2024, "alice", Wish(author="Bob", message="Hi"))
        self.store.add_admin("root", "secret1")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_backup_file_name_format(self):
        now = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        self.assertEqual(
            backup_file_name(now), "db-backup-2024-05-01T12-30-45-123Z.json"
        )

    def test_backup_then_restore_round_trips(self):
        original = json.loads(json.dumps(self.store.payload))
        backup_path = backup_database(self.store, self.backups_dir)
        self.assertTrue(backup_path.name.startswith("db-backup-"))

        self.store.delete_year(2024)
        self.store.delete_admin("root")
        self.assertNotEqual(self.store.payload, original)

        restore_database(self.store, backup_path)
        self.assertEqual(self.store.payload, original)

    def test_backup_copies_records_the_schema_rejects(self):
        payload = {
            "years": [],
            "admins": [{"username": "root", "password": "secret1"}],
            "socialPosts": [
                {
                    "id": "p1",
                    "platform": "linkedin",
                    "title": "t",
                    "description": "d",
                    "url": "https://l.test/1",
                }
            ],
        }
        store = InMemoryDocumentStore(payload)
        backup_path = backup_database(store, self.backups_dir)
        with open(backup_path, encoding="utf-8") as f:
            self.assertEqual(json.load(f), payload)
        self.assertEqual(os.listdir(self.backups_dir), [backup_path.name])

    def test_restore_missing_file(self):
        with self.assertRaises(MigrationError):
            restore_database(self.store, os.path.join(self.tmpdir, "nope.json"))

    def test_mime_types(self):
        self.assertEqual(get_mime_type("a.PNG"), "image/png")
        self.assertEqual(get_mime_type("clip.mov"), "video/quicktime")
        self.assertEqual(get_mime_type("notes.txt"), "application/octet-stream")


class MigrateLocalFilesTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.uploads_dir = os.path.join(self.tmpdir, "uploads")
        self.backups_dir = os.path.join(self.tmpdir, "backups")
        os.makedirs(self.uploads_dir)

        self.store = InMemoryDocumentStore()
        self.store.add_year(2024)
        self.store.add_event(2024, "Alice", "2024-05-01", "birthday")
        self.storage = InMemoryStorageClient(base_url="https://cdn.test")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _write_upload(self, name: str, data: bytes = b"data"):
        with open(os.path.join(self.uploads_dir, name), "wb") as f:
            f.write(data)

    def test_migrates_file_and_rewrites_url(self):
        self._write_upload("photo.png")
        self.store.set_event_media(
            2024,
            "alice",
            [MediaItem(type="image", url="/uploads/photo.png", hint="cake")],
            [],
        )

        result = migrate_local_files_to_cloud(
            self.store, self.storage, self.uploads_dir, self.backups_dir
        )

        self.assertTrue(result.success)
        self.assertEqual(result.migrated, 1)
        self.assertEqual(result.failed, 0)
        self.assertTrue(os.path.exists(result.backup_path))

        [key] = list(self.storage.stored_objects)
        self.assertTrue(key.startswith("migrated/"))
        media = self.store.get_event_by_slug(2024, "alice").media
        self.assertEqual(media[0].url, f"https://cdn.test/{key}")

    def test_rewrites_absolute_local_urls_and_wish_images(self):
        self._write_upload("photo.png")
        self.store.add_wish(
            2024,
            "alice",
            Wish(message="Hi", imageUrl="https://site.test/uploads/photo.png"),
        )

        migrate_local_files_to_cloud(
            self.store,
            self.storage,
            self.uploads_dir,
            self.backups_dir,
            local_base_url="https://site.test",
        )

        wish = self.store.get_event_by_slug(2024, "alice").wishes[0]
        self.assertTrue(wish.imageUrl.startswith("https://cdn.test/migrated/"))

    def test_failed_file_does_not_stop_batch(self):
        self._write_upload("a.png")
        self._write_upload("b.png")
        real_upload = self.storage.upload

        def flaky_upload(data, filename, content_type, folder="uploads"):
            if filename == "a.png":
                raise OSError("timeout")
            return real_upload(data, filename, content_type, folder=folder)

        with mock.patch.object(self.storage, "upload", side_effect=flaky_upload):
            result = migrate_local_files_to_cloud(
                self.store, self.storage, self.uploads_dir, self.backups_dir
            )

        self.assertTrue(result.success)
        self.assertEqual(result.migrated, 1)
        self.assertEqual(result.failed, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("a.png", result.errors[0])

    def test_missing_uploads_directory(self):
        shutil.rmtree(self.uploads_dir)
        result = migrate_local_files_to_cloud(
            self.store, self.storage, self.uploads_dir, self.backups_dir
        )
        self.assertFalse(result.success)
        self.assertEqual(result.errors, ["Uploads directory does not exist"])
        self.assertIsNotNone(result.backup_path)

    def test_backup_failure_aborts(self):
        self._write_upload("photo.png")
        with mock.patch(
            "celebrate.migration.backup_database",
            side_effect=MigrationError("Failed to create backup: disk full"),
        ):
            with self.assertRaises(MigrationError):
                migrate_local_files_to_cloud(
                    self.store, self.storage, self.uploads_dir, self.backups_dir
                )
        self.assertEqual(self.storage.stored_objects, {})


if __name__ == "__main__":
    unittest.main()
