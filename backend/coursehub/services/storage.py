"""
Blob Storage — File persistence for uploaded PDFs, on local disk or in S3.

Urls returned by ``save`` are opaque to callers: ``local://<folder>/<name>``
for disk and ``s3://<bucket>/<key>`` for S3. Only the store that produced a
url can read or delete it.
"""
import logging
import os
import re
import time
import uuid
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from coursehub.config import get_settings
from coursehub.errors import NotFoundError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def unique_name(filename: str) -> str:
    base = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "file")) or "file"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{base}"


class BlobStore:
    def save(self, filename: str, data: bytes, folder: str = "pdfs", content_type: str | None = None) -> str:
        raise NotImplementedError

    def read(self, url: str) -> bytes:
        raise NotImplementedError

    def delete(self, url: str) -> bool:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    SCHEME = "local://"

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, url: str) -> Path:
        if not url.startswith(self.SCHEME):
            raise NotFoundError("File not found", error_code="FILE_NOT_FOUND")
        path = (self.root / url[len(self.SCHEME):]).resolve()
        # Reject urls that escape the upload root
        if self.root not in path.parents:
            raise NotFoundError("File not found", error_code="FILE_NOT_FOUND")
        return path

    def save(self, filename: str, data: bytes, folder: str = "pdfs", content_type: str | None = None) -> str:
        target_dir = self.root / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        name = unique_name(filename)
        (target_dir / name).write_bytes(data)
        logger.info("Stored %d bytes at %s/%s", len(data), folder, name)
        return f"{self.SCHEME}{folder}/{name}"

    def read(self, url: str) -> bytes:
        path = self._path(url)
        if not path.is_file():
            raise NotFoundError("File not found", error_code="FILE_NOT_FOUND")
        return path.read_bytes()

    def delete(self, url: str) -> bool:
        try:
            path = self._path(url)
        except NotFoundError:
            return False
        if path.is_file():
            path.unlink()
            return True
        return False


class S3BlobStore(BlobStore):
    SCHEME = "s3://"

    def __init__(self, bucket: str, region: str | None = None, client=None):
        self.bucket = bucket
        self.client = client or boto3.client("s3", region_name=region)

    def _key(self, url: str) -> str:
        prefix = f"{self.SCHEME}{self.bucket}/"
        if not url.startswith(prefix):
            raise NotFoundError("File not found", error_code="FILE_NOT_FOUND")
        return url[len(prefix):]

    def save(self, filename: str, data: bytes, folder: str = "pdfs", content_type: str | None = None) -> str:
        key = f"{folder}/{unique_name(filename)}"
        extra = {"ContentType": content_type} if content_type else {}
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, key)
        return f"{self.SCHEME}{self.bucket}/{key}"

    def read(self, url: str) -> bytes:
        key = self._key(url)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFoundError("File not found", error_code="FILE_NOT_FOUND")
            raise
        return obj["Body"].read()

    def delete(self, url: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(url))
            return True
        except NotFoundError:
            return False
        except (BotoCoreError, ClientError):
            logger.exception("Failed to delete %s", url)
            return False


@lru_cache
def get_blob_store() -> BlobStore:
    settings = get_settings()
    if settings.STORAGE_BACKEND == "s3":
        if not settings.S3_BUCKET:
            raise RuntimeError("STORAGE_BACKEND=s3 requires S3_BUCKET")
        return S3BlobStore(bucket=settings.S3_BUCKET, region=settings.AWS_REGION)
    return LocalBlobStore(settings.UPLOAD_DIR)
