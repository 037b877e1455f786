import hashlib
import os
import shutil
import tempfile
import unittest
from unittest import mock

import requests
from botocore.exceptions import ClientError

from celebrate.config import Settings
from celebrate.storage import (
    CloudinaryStorageClient,
    InMemoryStorageClient,
    LocalStorageClient,
    S3StorageClient,
    StorageConfigurationError,
    StorageUploadError,
    cloudinary_signature,
    create_storage_client,
    file_extension,
    storage_status,
    upload_file_to_storage,
)


def make_settings(**overrides) -> Settings:
    values = {
        "storage_type": "local",
        "app_env": "development",
        "vercel": None,
        "netlify": None,
        "railway_environment": None,
        "aws_s3_bucket_name": None,
        "aws_access_key_id": None,
        "aws_secret_access_key": None,
        "cloudinary_cloud_name": None,
        "cloudinary_api_key": None,
        "cloudinary_api_secret": None,
        "cloudinary_upload_preset": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FileExtensionTests(unittest.TestCase):
    def test_uses_filename_extension(self):
        self.assertEqual(file_extension("party.JPEG", "image/jpeg"), "JPEG")

    def test_falls_back_to_mime_type(self):
        self.assertEqual(file_extension("blob", "image/png"), "jpg")
        self.assertEqual(file_extension("", "video/webm"), "mp4")
        self.assertEqual(file_extension("", "application/pdf"), "bin")


class LocalStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.client = LocalStorageClient(uploads_dir=os.path.join(self.tmpdir, "uploads"))

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_upload_writes_file_under_uploads(self):
        result = self.client.upload(b"abc", "photo.png", "image/png")
        self.assertTrue(result.url.startswith("/uploads/"))
        self.assertTrue(result.url.endswith(".png"))
        self.assertTrue(result.key.startswith("uploads/"))
        stored = os.path.join(self.client.uploads_dir, os.path.basename(result.key))
        with open(stored, "rb") as f:
            self.assertEqual(f.read(), b"abc")

    def test_distinct_names_for_same_filename(self):
        first = self.client.upload(b"1", "a.png", "image/png")
        second = self.client.upload(b"2", "a.png", "image/png")
        self.assertNotEqual(first.key, second.key)

    def test_base_url_prefixes_public_url(self):
        client = LocalStorageClient(
            uploads_dir=self.client.uploads_dir, base_url="https://site.test/"
        )
        result = client.upload(b"abc", "a.gif", "image/gif")
        self.assertTrue(result.url.startswith("https://site.test/uploads/"))

    def test_delete(self):
        result = self.client.upload(b"abc", "photo.png", "image/png")
        self.assertTrue(self.client.delete(result.key))
        self.assertFalse(self.client.delete(result.key))


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("celebrate.storage.boto3.client")
        self.boto_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.s3 = self.boto_client.return_value

    def test_upload_is_public_read(self):
        client = S3StorageClient(bucket="party-bucket", region="eu-west-1")
        result = client.upload(b"abc", "photo.png", "image/png")

        self.assertTrue(result.key.startswith("uploads/"))
        self.assertEqual(
            result.url, f"https://party-bucket.s3.eu-west-1.amazonaws.com/{result.key}"
        )
        self.s3.put_object.assert_called_once_with(
            Bucket="party-bucket",
            Key=result.key,
            Body=b"abc",
            ContentType="image/png",
            ACL="public-read",
        )

    def test_custom_base_url(self):
        client = S3StorageClient(bucket="b", base_url="https://cdn.test/")
        self.assertEqual(client.get_url("uploads/x.png"), "https://cdn.test/uploads/x.png")

    def test_delete_failure_returns_false(self):
        self.s3.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )
        client = S3StorageClient(bucket="b")
        self.assertFalse(client.delete("uploads/x.png"))


class CloudinaryStorageClientTests(unittest.TestCase):
    def test_signature_matches_sorted_params_and_secret(self):
        expected = hashlib.sha1(b"public_id=abc&timestamp=1315060510secret").hexdigest()
        self.assertEqual(
            cloudinary_signature({"timestamp": 1315060510, "public_id": "abc"}, "secret"),
            expected,
        )

    @mock.patch("celebrate.storage.requests.post")
    def test_upload_posts_to_resource_endpoint(self, post):
        post.return_value.ok = True
        post.return_value.json.return_value = {
            "secure_url": "https://res.cloudinary.com/demo/video/upload/v1/uploads/x.mp4",
            "public_id": "uploads/x",
        }
        client = CloudinaryStorageClient(cloud_name="demo", upload_preset="preset")
        result = client.upload(b"abc", "clip.mp4", "video/mp4")

        self.assertEqual(result.key, "uploads/x")
        self.assertTrue(result.url.startswith("https://res.cloudinary.com/"))
        url = post.call_args[0][0]
        self.assertEqual(url, "https://api.cloudinary.com/v1_1/demo/video/upload")
        data = post.call_args[1]["data"]
        self.assertEqual(data["upload_preset"], "preset")
        self.assertEqual(data["folder"], "uploads")
        self.assertNotIn("signature", data)

    @mock.patch("celebrate.storage.requests.post")
    def test_signed_upload_when_credentials_present(self, post):
        post.return_value.ok = True
        post.return_value.json.return_value = {"secure_url": "https://x", "public_id": "p"}
        client = CloudinaryStorageClient(
            cloud_name="demo", upload_preset="preset", api_key="key", api_secret="secret"
        )
        client.upload(b"abc", "photo.png", "image/png")

        data = post.call_args[1]["data"]
        self.assertEqual(data["api_key"], "key")
        signed = {k: data[k] for k in ("folder", "upload_preset", "timestamp")}
        self.assertEqual(data["signature"], cloudinary_signature(signed, "secret"))

    @mock.patch("celebrate.storage.requests.post")
    def test_delete_sends_signed_destroy(self, post):
        post.return_value.ok = True
        client = CloudinaryStorageClient(
            cloud_name="demo", api_key="key", api_secret="secret"
        )
        self.assertTrue(client.delete("uploads/x"))

        self.assertEqual(
            post.call_args[0][0], "https://api.cloudinary.com/v1_1/demo/image/destroy"
        )
        body = post.call_args[1]["json"]
        self.assertEqual(body["public_id"], "uploads/x")
        self.assertEqual(body["api_key"], "key")
        self.assertEqual(
            body["signature"],
            cloudinary_signature(
                {"public_id": "uploads/x", "timestamp": body["timestamp"]}, "secret"
            ),
        )

    @mock.patch("celebrate.storage.requests.post")
    def test_delete_rejected_by_api(self, post):
        post.return_value.ok = False
        client = CloudinaryStorageClient(cloud_name="demo", api_key="k", api_secret="s")
        self.assertFalse(client.delete("uploads/x"))

    @mock.patch(
        "celebrate.storage.requests.post",
        side_effect=requests.ConnectionError("unreachable"),
    )
    def test_delete_network_error_returns_false(self, post):
        client = CloudinaryStorageClient(cloud_name="demo", api_key="k", api_secret="s")
        self.assertFalse(client.delete("uploads/x"))

    @mock.patch("celebrate.storage.requests.post")
    def test_upload_error_status(self, post):
        post.return_value.ok = False
        post.return_value.status_code = 400
        client = CloudinaryStorageClient(cloud_name="demo", upload_preset="preset")
        with self.assertRaises(StorageUploadError):
            client.upload(b"abc", "photo.png", "image/png")


class StorageFactoryTests(unittest.TestCase):
    def test_defaults_to_local(self):
        client = create_storage_client(make_settings(uploads_dir="/tmp/uploads-test"))
        self.assertIsInstance(client, LocalStorageClient)
        self.assertEqual(client.uploads_dir, "/tmp/uploads-test")

    def test_s3_without_bucket_is_configuration_error(self):
        with self.assertRaises(StorageConfigurationError) as ctx:
            create_storage_client(make_settings(storage_type="s3"))
        self.assertIn("AWS_S3_BUCKET_NAME", str(ctx.exception))

    def test_cloudinary_without_cloud_name_is_configuration_error(self):
        with self.assertRaises(StorageConfigurationError):
            create_storage_client(make_settings(storage_type="cloudinary"))

    @mock.patch("celebrate.storage.boto3.client")
    def test_s3_client_built_from_settings(self, boto_client):
        client = create_storage_client(
            make_settings(storage_type="s3", aws_s3_bucket_name="bucket")
        )
        self.assertIsInstance(client, S3StorageClient)
        self.assertEqual(client.bucket, "bucket")

    def test_local_in_production_logs_warning(self):
        with self.assertLogs("celebrate.storage", level="WARNING"):
            create_storage_client(make_settings(app_env="production"))


class UploadFileToStorageTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient()

    def test_success(self):
        result = upload_file_to_storage(
            self.storage, b"abc", "a.png", "image/png", make_settings(), folder="test"
        )
        self.assertTrue(result.key.startswith("test/"))
        self.assertIn(result.key, self.storage.stored_objects)

    def test_generic_failure_message(self):
        with mock.patch.object(self.storage, "upload", side_effect=OSError("boom")):
            with self.assertRaises(StorageUploadError) as ctx:
                upload_file_to_storage(
                    self.storage, b"abc", "a.png", "image/png", make_settings()
                )
        self.assertEqual(
            str(ctx.exception),
            "Failed to upload file. Please try again or contact support.",
        )

    def test_hosted_local_failure_message(self):
        with mock.patch.object(self.storage, "upload", side_effect=OSError("read-only")):
            with self.assertRaises(StorageUploadError) as ctx:
                upload_file_to_storage(
                    self.storage, b"abc", "a.png", "image/png", make_settings(vercel="1")
                )
        self.assertIn("hosted environments", str(ctx.exception))


class StorageStatusTests(unittest.TestCase):
    def test_local_development_is_configured(self):
        status = storage_status(make_settings())
        self.assertEqual(status["type"], "local")
        self.assertTrue(status["configured"])
        self.assertIsNone(status["error"])
        self.assertEqual(status["environment"]["platform"], "Local")

    def test_local_on_hosted_platform(self):
        status = storage_status(make_settings(netlify="true"))
        self.assertFalse(status["configured"])
        self.assertTrue(status["environment"]["isHosted"])
        self.assertEqual(status["environment"]["platform"], "Netlify")

    def test_incomplete_s3(self):
        status = storage_status(
            make_settings(storage_type="s3", aws_s3_bucket_name="bucket")
        )
        self.assertFalse(status["configured"])
        self.assertIn("AWS S3", status["error"])

    def test_complete_cloudinary(self):
        status = storage_status(
            make_settings(
                storage_type="cloudinary",
                cloudinary_cloud_name="demo",
                cloudinary_api_key="k",
                cloudinary_api_secret="s",
                cloudinary_upload_preset="p",
            )
        )
        self.assertTrue(status["configured"])


if __name__ == "__main__":
    unittest.main()
