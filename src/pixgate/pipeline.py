"""Cache-aware image pipeline.

Per request:
    CACHE_LOOKUP -> HIT  -> return cached bytes
                 -> MISS -> fetch source -> (detect face) -> transform
                         -> return result, write cache in the background

Every cache read failure counts as a miss. Concurrent misses for the same key
each recompute and write independently.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from functools import partial
from typing import TYPE_CHECKING

from pixgate.errors import StorageReadError
from pixgate.imaging.transform import ImageArtifact, transform_image

if TYPE_CHECKING:
    from pixgate.backends.face_detector import FaceDetector
    from pixgate.backends.object_store import ObjectStore
    from pixgate.config import ImageSource
    from pixgate.imaging.params import TransformParams
    from pixgate.imaging.pool import BackgroundTasks, TransformPool

logger = logging.getLogger(__name__)


def cache_key(image_key: str, params: TransformParams) -> str:
    """Return the cache object key for ``image_key`` under ``params``."""
    digest = hashlib.md5(params.cacheable_param_key().encode()).hexdigest()  # noqa: S324
    return f"{digest}/{image_key}"


class ImagePipeline:
    """Serves transformed images, reading and filling the cache bucket."""

    def __init__(
        self,
        store: ObjectStore,
        detector: FaceDetector,
        pool: TransformPool,
        background: BackgroundTasks,
        max_image_pixels: int | None = None,
    ) -> None:
        self._store = store
        self._detector = detector
        self._pool = pool
        self.background = background
        self._max_image_pixels = max_image_pixels

    async def fetch(self, source: ImageSource, image_key: str, params: TransformParams) -> ImageArtifact:
        key = cache_key(image_key, params)

        try:
            cached = await asyncio.to_thread(self._store.get, source.cache_bucket, key)
        except StorageReadError as exc:
            logger.debug("Cache miss for %s/%s: %s", source.cache_bucket, key, exc)
        else:
            logger.debug("Cache hit for %s/%s", source.cache_bucket, key)
            return ImageArtifact(data=cached, format=params.format)

        return await self._transform_and_store(source, image_key, key, params)

    async def _transform_and_store(
        self,
        source: ImageSource,
        image_key: str,
        key: str,
        params: TransformParams,
    ) -> ImageArtifact:
        original = await asyncio.to_thread(self._store.get, source.bucket, image_key)

        face_box = None
        if params.facecrop:
            face_box = await asyncio.to_thread(self._detector.detect, source.bucket, image_key)

        artifact = await self._pool.run(
            partial(transform_image, original, params, face_box, max_pixels=self._max_image_pixels)
        )

        self.background.submit(
            self._store.put,
            source.cache_bucket,
            key,
            artifact.data,
            artifact.content_type,
            name=f"cache-write:{source.cache_bucket}/{key}",
        )
        return artifact

    def shutdown(self) -> None:
        """Release the transform worker threads."""
        self._pool.shutdown()
