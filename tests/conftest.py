"""Shared fixtures: in-memory storage and face detection fakes, test images."""

from __future__ import annotations

import io
import threading
from typing import TYPE_CHECKING

import pytest
from PIL import Image

from pixgate.errors import StorageReadError, StorageWriteError

if TYPE_CHECKING:
    from collections.abc import Callable

    from pixgate.imaging.geometry import BoundingBox


class FakeObjectStore:
    """Dict-backed object store that records every call."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.gets: list[tuple[str, str]] = []
        self.puts: list[tuple[str, str, bytes, str | None]] = []
        self.fail_puts = False
        self._lock = threading.Lock()

    def get(self, bucket: str, key: str) -> bytes:
        with self._lock:
            self.gets.append((bucket, key))
            try:
                return self.objects[(bucket, key)]
            except KeyError:
                raise StorageReadError(f"s3://{bucket}/{key} not found") from None

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:
        with self._lock:
            self.puts.append((bucket, key, data, content_type))
            if self.fail_puts:
                raise StorageWriteError(f"write of s3://{bucket}/{key} refused")
            self.objects[(bucket, key)] = data


class FakeFaceDetector:
    """Returns a fixed bounding box and records which objects were inspected."""

    def __init__(self, box: BoundingBox | None = None) -> None:
        self.box = box
        self.calls: list[tuple[str, str]] = []

    def detect(self, bucket: str, key: str) -> BoundingBox | None:
        self.calls.append((bucket, key))
        return self.box


def encode_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a deterministic gradient image."""
    gradient = Image.linear_gradient("L")
    image = Image.merge("RGB", (gradient, gradient.transpose(Image.Transpose.ROTATE_90), gradient))
    image = image.resize((width, height))
    if mode != "RGB":
        image = image.convert(mode)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def decode_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture()
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def detector() -> FakeFaceDetector:
    return FakeFaceDetector()


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture()
def open_image() -> Callable[[bytes], Image.Image]:
    return decode_image
