"""Object storage access.

Implementations: S3 (and S3-compatible endpoints) via boto3.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from pixgate.errors import StorageReadError, StorageWriteError, StreamDecodeError

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """Protocol for byte storage addressed by bucket and key.

    Implementations must be safe to call from several threads at once.
    """

    def get(self, bucket: str, key: str) -> bytes:
        """Return the object's bytes.

        Raises:
            StorageReadError: If the object is missing or cannot be read.
        """
        ...

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:
        """Store ``data`` under ``key``.

        Raises:
            StorageWriteError: If the write fails.
        """
        ...


class S3ObjectStore:
    """Reads and writes objects with a shared boto3 S3 client."""

    def __init__(self, client: S3Client) -> None:
        self._client = client

    def get(self, bucket: str, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageReadError(f"read of s3://{bucket}/{key} failed: {exc}") from exc

        body = response["Body"]
        try:
            return body.read()
        except (BotoCoreError, OSError) as exc:
            raise StreamDecodeError(f"stream of s3://{bucket}/{key} failed: {exc}") from exc
        finally:
            body.close()

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": data}
        if content_type is not None:
            kwargs["ContentType"] = content_type
        try:
            self._client.put_object(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise StorageWriteError(f"write of s3://{bucket}/{key} failed: {exc}") from exc
        logger.debug("Stored s3://%s/%s (%d bytes)", bucket, key, len(data))
