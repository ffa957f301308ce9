"""Tests for the Pillow transform engine."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from pixgate.errors import TransformFailed
from pixgate.imaging.geometry import BoundingBox
from pixgate.imaging.params import ImageFormat, TransformParams
from pixgate.imaging.transform import transform_image

if TYPE_CHECKING:
    from collections.abc import Callable


class TestResize:
    def test_no_dimensions_keeps_size(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(120, 80), TransformParams())
        assert open_image(result.data).size == (120, 80)

    def test_width_only_keeps_aspect(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(400, 200), TransformParams(w=100))
        assert open_image(result.data).size == (100, 50)

    def test_height_only_keeps_aspect(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(400, 200), TransformParams(h=50))
        assert open_image(result.data).size == (100, 50)

    def test_both_dimensions_may_distort(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(400, 200), TransformParams(w=60, h=90))
        assert open_image(result.data).size == (60, 90)

    def test_fractional_dimensions_round(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(300, 200), TransformParams(w=100.6))
        assert open_image(result.data).size == (101, 67)

    def test_upscale(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(50, 25), TransformParams(w=200))
        assert open_image(result.data).size == (200, 100)


class TestFormats:
    def test_default_output_is_jpeg(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(40, 40), TransformParams())
        assert result.format is ImageFormat.JPEG
        assert result.content_type == "image/jpeg"
        assert open_image(result.data).format == "JPEG"

    def test_png_output(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(40, 40, fmt="JPEG"), TransformParams(format=ImageFormat.PNG))
        assert result.content_type == "image/png"
        assert open_image(result.data).format == "PNG"

    def test_transparent_source_to_jpeg(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(40, 40, mode="RGBA"), TransformParams())
        assert open_image(result.data).mode == "RGB"

    def test_transparent_source_keeps_alpha_in_png(
        self, make_image: Callable[..., bytes], open_image: Callable
    ) -> None:
        params = TransformParams(format=ImageFormat.PNG, enhance=True)
        result = transform_image(make_image(40, 40, mode="RGBA"), params)
        assert open_image(result.data).mode == "RGBA"

    def test_greyscale_source(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        params = TransformParams(w=20, enhance=True, blur=True, sharpen=True)
        result = transform_image(make_image(40, 40, mode="L"), params)
        assert open_image(result.data).size == (20, 20)


class TestFaceCrop:
    def test_face_crop_fixture(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        box = BoundingBox(width=0.5, height=0.3, left=0.25, top=0.1)
        params = TransformParams(format=ImageFormat.PNG)
        result = transform_image(make_image(1000, 800), params, box)
        # Crop 500x400 at (250, -26) clamps to rows 0-374.
        assert open_image(result.data).size == (500, 374)

    def test_face_crop_then_resize_uses_cropped_aspect(
        self, make_image: Callable[..., bytes], open_image: Callable
    ) -> None:
        box = BoundingBox(width=0.5, height=0.5, left=0.25, top=0.25)
        params = TransformParams(w=100, format=ImageFormat.PNG)
        result = transform_image(make_image(400, 400), params, box)
        # Target aspect 100/400 gives a 50x200 crop, resized to 100 wide.
        assert open_image(result.data).size == (100, 400)

    def test_crop_outside_image_fails(self, make_image: Callable[..., bytes]) -> None:
        box = BoundingBox(width=0.1, height=0.1, left=5.0, top=5.0)
        with pytest.raises(TransformFailed, match="does not intersect"):
            transform_image(make_image(100, 100), TransformParams(), box)


class TestFilters:
    def test_enhance_stretches_contrast(self, open_image: Callable) -> None:
        flat = Image.new("RGB", (32, 32), (100, 100, 100))
        flat.paste((120, 120, 120), (0, 0, 16, 32))
        source = _encode_png(flat)

        result = transform_image(source, TransformParams(enhance=True, format=ImageFormat.PNG))
        pixels = np.asarray(open_image(result.data))
        assert pixels.min() == 0
        assert pixels.max() == 255

    def test_blur_smooths_edges(self, open_image: Callable) -> None:
        split = Image.new("L", (64, 64), 0)
        split.paste(255, (32, 0, 64, 64))
        source = _encode_png(split)

        plain = np.asarray(open_image(transform_image(source, TransformParams(format=ImageFormat.PNG)).data))
        blurred = np.asarray(
            open_image(transform_image(source, TransformParams(blur=True, format=ImageFormat.PNG)).data)
        )
        assert np.abs(np.diff(blurred.astype(int), axis=1)).max() < np.abs(np.diff(plain.astype(int), axis=1)).max()

    def test_sharpen_changes_output(self) -> None:
        split = Image.new("L", (64, 64), 64)
        split.paste(192, (32, 0, 64, 64))
        source = _encode_png(split)
        plain = transform_image(source, TransformParams(format=ImageFormat.PNG))
        sharpened = transform_image(source, TransformParams(sharpen=True, format=ImageFormat.PNG))
        assert plain.data != sharpened.data


class TestDeterminism:
    def test_same_input_same_bytes(self, make_image: Callable[..., bytes]) -> None:
        source = make_image(300, 200)
        params = TransformParams(w=150, enhance=True, blur=True, sharpen=True)
        box = BoundingBox(width=0.4, height=0.4, left=0.3, top=0.3)
        assert transform_image(source, params, box).data == transform_image(source, params, box).data


class TestFailures:
    def test_undecodable_bytes(self) -> None:
        with pytest.raises(TransformFailed, match="image library error"):
            transform_image(b"definitely not an image", TransformParams())

    def test_truncated_image(self, make_image: Callable[..., bytes]) -> None:
        data = make_image(200, 200, fmt="PNG")
        with pytest.raises(TransformFailed):
            transform_image(data[: len(data) // 2], TransformParams())

    def test_pixel_limit(self, make_image: Callable[..., bytes]) -> None:
        with pytest.raises(TransformFailed, match="pixel limit"):
            transform_image(make_image(100, 100), TransformParams(), max_pixels=5000)

    def test_output_pixel_limit(self, make_image: Callable[..., bytes]) -> None:
        params = TransformParams.from_query({"w": "1e7", "h": "1e7"})
        with pytest.raises(TransformFailed, match="output size .* pixel limit"):
            transform_image(make_image(40, 40), params, max_pixels=50_000_000)

    def test_output_limit_applies_after_face_crop(self, make_image: Callable[..., bytes]) -> None:
        box = BoundingBox(width=0.5, height=0.5, left=0.25, top=0.25)
        with pytest.raises(TransformFailed, match="pixel limit"):
            transform_image(make_image(100, 100), TransformParams(w=200), box, max_pixels=10_000)

    def test_upscale_within_output_limit(self, make_image: Callable[..., bytes], open_image: Callable) -> None:
        result = transform_image(make_image(40, 40), TransformParams(w=100, h=100), max_pixels=10_000)
        assert open_image(result.data).size == (100, 100)

    def test_oversized_dimensions_without_limit(self, make_image: Callable[..., bytes]) -> None:
        with pytest.raises(TransformFailed, match="image library error"):
            transform_image(make_image(40, 40), TransformParams(w=1e12))


def _encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
