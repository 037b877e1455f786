"""
Storage abstraction for uploaded media: local disk, S3 and Cloudinary.

One client is chosen from settings when the app starts and passed to the
request handlers; nothing here reads the environment directly.
"""

from __future__ import annotations

import hashlib
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from celebrate.config import Settings

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"
CLOUDINARY_DELIVERY_BASE = "https://res.cloudinary.com"


class StorageError(Exception):
    pass


class StorageConfigurationError(StorageError):
    """The selected backend is missing required settings; fix and restart."""


class StorageUploadError(StorageError):
    """An upload failed. Callers may retry; nothing retries internally."""


@dataclass(frozen=True)
class UploadResult:
    url: str
    key: str


class StorageClient(Protocol):
    """Defines the operations the handlers need from file storage."""

    def upload(
        self, data: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> UploadResult:
        ...

    def delete(self, key: str) -> bool:
        ...

    def get_url(self, key: str) -> str:
        ...


def file_extension(filename: str, content_type: str = "") -> str:
    """The filename's extension, or a default that matches the MIME type."""
    name = os.path.basename(filename or "")
    if "." in name:
        ext = name.rsplit(".", 1)[1]
        if ext:
            return ext
    if content_type.startswith("image/"):
        return "jpg"
    if content_type.startswith("video/"):
        return "mp4"
    return "bin"


@dataclass
class LocalStorageClient:
    """Writes uploads into a directory served under /uploads."""

    uploads_dir: str
    base_url: str = ""

    def upload(
        self, data: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> UploadResult:
        stored_name = f"{uuid.uuid4()}.{file_extension(filename, content_type)}"
        directory = Path(self.uploads_dir)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / stored_name).write_bytes(data)
        return UploadResult(
            url=f"{self.base_url.rstrip('/')}/uploads/{stored_name}",
            key=f"{folder}/{stored_name}",
        )

    def delete(self, key: str) -> bool:
        # Every local upload lives directly in uploads_dir whatever its folder.
        try:
            (Path(self.uploads_dir) / os.path.basename(key)).unlink()
            return True
        except OSError as exc:
            logger.error("Error deleting local file %s: %s", key, exc)
            return False

    def get_url(self, key: str) -> str:
        return f"{self.base_url.rstrip('/')}/uploads/{os.path.basename(key)}"


@dataclass
class S3StorageClient:
    """
    Public-read uploads to an S3 bucket (or an S3-compatible endpoint).
    """

    bucket: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    base_url: Optional[str] = None
    endpoint: Optional[str] = None

    def __post_init__(self):
        if not self.base_url:
            self.base_url = f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        self.base_url = self.base_url.rstrip("/")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    def upload(
        self, data: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> UploadResult:
        key = f"{folder}/{uuid.uuid4()}.{file_extension(filename, content_type)}"
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type or "application/octet-stream",
            ACL="public-read",
        )
        return UploadResult(url=self.get_url(key), key=key)

    def delete(self, key: str) -> bool:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
            return True
        except (BotoCoreError, ClientError) as exc:
            logger.error("Error deleting file from S3: %s", exc)
            return False

    def get_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"


def cloudinary_signature(params: dict, api_secret: str) -> str:
    """SHA-1 over the alphabetically sorted parameters followed by the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


@dataclass
class CloudinaryStorageClient:
    """Uploads through Cloudinary's REST API using an upload preset."""

    cloud_name: str
    upload_preset: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    def upload(
        self, data: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> UploadResult:
        resource_type = "video" if content_type.startswith("video/") else "image"
        params = {"folder": folder}
        if self.upload_preset:
            params["upload_preset"] = self.upload_preset
        if self.api_key and self.api_secret:
            params["timestamp"] = str(int(time.time()))
            params["signature"] = cloudinary_signature(params, self.api_secret)
            params["api_key"] = self.api_key

        response = requests.post(
            f"{CLOUDINARY_API_BASE}/{self.cloud_name}/{resource_type}/upload",
            data=params,
            files={"file": (filename, data, content_type or "application/octet-stream")},
        )
        if not response.ok:
            raise StorageUploadError(
                f"Failed to upload to Cloudinary (HTTP {response.status_code})"
            )
        payload = response.json()
        return UploadResult(url=payload["secure_url"], key=payload["public_id"])

    def delete(self, key: str) -> bool:
        try:
            timestamp = int(time.time())
            signature = cloudinary_signature(
                {"public_id": key, "timestamp": timestamp}, self.api_secret or ""
            )
            response = requests.post(
                f"{CLOUDINARY_API_BASE}/{self.cloud_name}/image/destroy",
                json={
                    "public_id": key,
                    "timestamp": timestamp,
                    "signature": signature,
                    "api_key": self.api_key,
                },
            )
            return response.ok
        except requests.RequestException as exc:
            logger.error("Error deleting file from Cloudinary: %s", exc)
            return False

    def get_url(self, key: str) -> str:
        return f"{CLOUDINARY_DELIVERY_BASE}/{self.cloud_name}/image/upload/{key}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload(
        self, data: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> UploadResult:
        key = f"{folder}/{uuid.uuid4()}.{file_extension(filename, content_type)}"
        self.stored_objects[key] = data
        return UploadResult(url=self.get_url(key), key=key)

    def delete(self, key: str) -> bool:
        return self.stored_objects.pop(key, None) is not None

    def get_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"


def create_storage_client(settings: Settings) -> StorageClient:
    """
    Build the storage client selected by STORAGE_TYPE.

    Raises StorageConfigurationError when the chosen backend is missing its
    required settings.
    """
    storage_type = settings.storage_type

    if storage_type == "local" and (settings.is_production or settings.is_hosted):
        logger.warning(
            "Local storage detected in production environment. "
            "This will not work on hosted platforms."
        )
        logger.warning(
            "Please configure cloud storage (Cloudinary or S3) for production deployment."
        )

    if storage_type == "s3":
        if not settings.aws_s3_bucket_name:
            raise StorageConfigurationError(
                "AWS S3 configuration missing. Please set AWS_S3_BUCKET_NAME "
                "and other AWS environment variables."
            )
        return S3StorageClient(
            bucket=settings.aws_s3_bucket_name,
            region=settings.aws_s3_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            base_url=settings.aws_s3_base_url,
            endpoint=settings.aws_s3_endpoint,
        )
    if storage_type == "cloudinary":
        if not settings.cloudinary_cloud_name:
            raise StorageConfigurationError(
                "Cloudinary configuration missing. Please set CLOUDINARY_CLOUD_NAME "
                "and other Cloudinary environment variables."
            )
        return CloudinaryStorageClient(
            cloud_name=settings.cloudinary_cloud_name,
            upload_preset=settings.cloudinary_upload_preset,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )
    return LocalStorageClient(
        uploads_dir=settings.uploads_dir, base_url=settings.public_base_url
    )


def upload_file_to_storage(
    storage: StorageClient,
    data: bytes,
    filename: str,
    content_type: str,
    settings: Settings,
    folder: str = "uploads",
) -> UploadResult:
    """
    Upload through the configured client, turning failures into messages a
    visitor can act on. The original error is logged.
    """
    try:
        return storage.upload(data, filename, content_type, folder=folder)
    except Exception as exc:
        logger.error("Storage upload error: %s", exc)
        if isinstance(exc, StorageConfigurationError):
            raise StorageUploadError(
                "Storage not configured. Please set up cloud storage "
                "(Cloudinary or S3) for file uploads."
            ) from exc
        if settings.storage_type == "local" and (
            settings.is_production or settings.is_hosted
        ):
            raise StorageUploadError(
                "Local storage does not work in hosted environments. "
                "Please configure cloud storage."
            ) from exc
        raise StorageUploadError(
            "Failed to upload file. Please try again or contact support."
        ) from exc


def storage_status(settings: Settings) -> dict:
    """Report whether the selected backend has everything it needs."""
    storage_type = settings.storage_type
    error = None

    if storage_type == "s3":
        configured = bool(
            settings.aws_access_key_id
            and settings.aws_secret_access_key
            and settings.aws_s3_bucket_name
        )
        if not configured:
            error = "AWS S3 configuration incomplete. Missing required environment variables."
    elif storage_type == "cloudinary":
        configured = bool(
            settings.cloudinary_cloud_name
            and settings.cloudinary_api_key
            and settings.cloudinary_api_secret
            and settings.cloudinary_upload_preset
        )
        if not configured:
            error = "Cloudinary configuration incomplete. Missing required environment variables."
    elif settings.is_production or settings.is_hosted:
        configured = False
        error = "Local storage does not work in production/hosted environments."
    else:
        configured = True

    return {
        "type": storage_type,
        "configured": configured,
        "error": error,
        "environment": {
            "isProduction": settings.is_production,
            "isHosted": settings.is_hosted,
            "platform": settings.hosting_platform or "Local",
        },
    }
