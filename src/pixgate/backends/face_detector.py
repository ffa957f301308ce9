"""Face detection for images that already live in object storage.

Implementations: AWS Rekognition ``DetectFaces`` against the S3 object.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from pixgate.imaging.geometry import BoundingBox

if TYPE_CHECKING:
    from mypy_boto3_rekognition.client import RekognitionClient

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    """Protocol for face detection services."""

    def detect(self, bucket: str, key: str) -> BoundingBox | None:
        """Return the bounding box of the first detected face.

        Returns:
            ``None`` when no face is found or the service call fails.
        """
        ...


class RekognitionFaceDetector:
    """Face detection backed by a shared boto3 Rekognition client."""

    def __init__(self, client: RekognitionClient) -> None:
        self._client = client

    def detect(self, bucket: str, key: str) -> BoundingBox | None:
        try:
            response = self._client.detect_faces(
                Image={"S3Object": {"Bucket": bucket, "Name": key}},
                Attributes=["DEFAULT"],
            )
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Face detection failed for s3://%s/%s: %s", bucket, key, exc)
            return None

        faces = response.get("FaceDetails") or []
        if not faces or "BoundingBox" not in faces[0]:
            logger.debug("No face found in s3://%s/%s", bucket, key)
            return None

        box = faces[0]["BoundingBox"]
        return BoundingBox(
            width=box.get("Width"),
            height=box.get("Height"),
            left=box.get("Left"),
            top=box.get("Top"),
        )
