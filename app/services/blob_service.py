"""S3-compatible blob storage for photo bytes."""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.errors import BlobNotFound, StorageFault

logger = logging.getLogger(__name__)

OWNER_METADATA_KEY = "owner-id"
MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class BlobObject:
    key: str
    content_type: Optional[str]
    body: BinaryIO

    def close(self):
        self.body.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class BlobService:
    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.BLOB_STORAGE_BUCKET
        self.spool_max_bytes = settings.BLOB_SPOOL_MAX_BYTES

    @property
    def client(self):
        if self._client is None:
            kwargs = {
                "service_name": "s3",
                "region_name": settings.BLOB_STORAGE_REGION,
                "config": BotoConfig(signature_version="s3v4"),
            }
            if settings.BLOB_STORAGE_ACCESS_KEY:
                kwargs["aws_access_key_id"] = settings.BLOB_STORAGE_ACCESS_KEY
                kwargs["aws_secret_access_key"] = settings.BLOB_STORAGE_SECRET_KEY
            if settings.BLOB_STORAGE_ENDPOINT:
                kwargs["endpoint_url"] = settings.BLOB_STORAGE_ENDPOINT
            self._client = boto3.client(**kwargs)
        return self._client

    def store(self, stream: BinaryIO, key: str, content_type: str, owner_tag: str) -> str:
        """Write the whole stream under ``key``. Returns the key."""
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=stream,
                ContentType=content_type,
                Metadata={OWNER_METADATA_KEY: owner_tag},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageFault(f"Failed to store blob {key}: {e}") from e
        logger.info("Stored blob %s in bucket %s", key, self.bucket)
        return key

    def open_read(self, key: str) -> BlobObject:
        """Fetch a blob into a fresh, seekable stream positioned at 0.

        Every call downloads again, so callers get independent streams.
        """
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                raise BlobNotFound(f"Blob not found: {key}") from e
            raise StorageFault(f"Failed to read blob {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageFault(f"Failed to read blob {key}: {e}") from e

        spool = tempfile.SpooledTemporaryFile(max_size=self.spool_max_bytes)
        body = response["Body"]
        try:
            shutil.copyfileobj(body, spool)
        except (BotoCoreError, OSError) as e:
            spool.close()
            raise StorageFault(f"Failed to read blob {key}: {e}") from e
        finally:
            body.close()
        spool.seek(0)
        return BlobObject(key=key, content_type=response.get("ContentType"), body=spool)

    def delete(self, key: str):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageFault(f"Failed to delete blob {key}: {e}") from e
        logger.info("Deleted blob %s", key)

    def ensure_bucket(self):
        """Create the bucket if it does not exist (useful for dev with MinIO)."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except Exception:
            try:
                self.client.create_bucket(Bucket=self.bucket)
                logger.info("Created bucket: %s", self.bucket)
            except Exception as e:
                logger.warning("Could not create bucket %s: %s", self.bucket, e)


blob_service = BlobService()
