"""Transform engine: decode, crop, resize, filter, and encode one image.

Everything here is a pure function of its inputs so the same source bytes
and parameters always produce the same output bytes.
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from pixgate.errors import TransformFailed
from pixgate.imaging.geometry import face_crop_region
from pixgate.imaging.params import ImageFormat

if TYPE_CHECKING:
    from pixgate.imaging.geometry import BoundingBox
    from pixgate.imaging.params import TransformParams

# Blur is radius 20 / sigma 10 and sharpen radius 0 (auto) / sigma 10. Pillow sizes
# both kernels from sigma alone.
BLUR_SIGMA: float = 10.0
SHARPEN_SIGMA: float = 10.0
JPEG_QUALITY: int = 90

_RESAMPLE = Image.Resampling.LANCZOS


@dataclass(frozen=True)
class ImageArtifact:
    """Encoded output image."""

    data: bytes
    format: ImageFormat

    @property
    def content_type(self) -> str:
        return self.format.content_type


def transform_image(
    data: bytes,
    params: TransformParams,
    face_box: BoundingBox | None = None,
    *,
    max_pixels: int | None = None,
) -> ImageArtifact:
    """Apply ``params`` to the encoded image ``data``.

    Raises:
        TransformFailed: If the image library fails at any step.
    """
    try:
        image = _decode(data, max_pixels)
        if face_box is not None:
            image = _face_crop(image, params, face_box)
        image = _resize(image, params.w, params.h, max_pixels)
        if params.enhance:
            image = _auto_gamma(_auto_level(image))
        if params.blur:
            image = image.filter(ImageFilter.GaussianBlur(radius=BLUR_SIGMA))
        if params.sharpen:
            image = image.filter(ImageFilter.UnsharpMask(radius=SHARPEN_SIGMA))
        return ImageArtifact(data=_encode(image, params.format), format=params.format)
    except TransformFailed:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        EOFError,
        ValueError,
        OverflowError,
        MemoryError,
    ) as exc:
        raise TransformFailed(f"image library error: {exc!r}") from exc


def _decode(data: bytes, max_pixels: int | None) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    width, height = image.size
    if max_pixels is not None and width * height > max_pixels:
        raise TransformFailed(f"image is {width}x{height}, above the {max_pixels} pixel limit")
    image.load()
    if image.mode not in ("RGB", "RGBA", "L"):
        image = image.convert("RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB")
    return image


def _face_crop(image: Image.Image, params: TransformParams, face_box: BoundingBox) -> Image.Image:
    width, height = image.size
    region = face_crop_region(
        face_box,
        width,
        height,
        target_width=params.w,
        target_height=params.h,
        padding=params.padding,
    )
    left, top, right, bottom = region.pixel_box(width, height)
    if right <= left or bottom <= top:
        raise TransformFailed(f"face crop {region} does not intersect the {width}x{height} image")
    return image.crop((left, top, right, bottom))


def _resize(
    image: Image.Image,
    width: float | None,
    height: float | None,
    max_pixels: int | None = None,
) -> Image.Image:
    current_w, current_h = image.size
    aspect = current_w / current_h

    if width is not None and height is None:
        new_w, new_h = width, width / aspect
    elif width is None and height is not None:
        new_w, new_h = height * aspect, height
    elif width is not None and height is not None:
        new_w, new_h = width, height
    else:
        return image

    size = (max(1, round(new_w)), max(1, round(new_h)))
    if max_pixels is not None and size[0] * size[1] > max_pixels:
        raise TransformFailed(f"output size {size[0]}x{size[1]} is above the {max_pixels} pixel limit")
    if size == image.size:
        return image
    return image.resize(size, resample=_RESAMPLE)


def _auto_level(image: Image.Image) -> Image.Image:
    """Stretch each colour channel to the full 0-255 range."""
    if image.mode == "RGBA":
        alpha = image.getchannel("A")
        stretched = ImageOps.autocontrast(image.convert("RGB"))
        stretched.putalpha(alpha)
        return stretched
    return ImageOps.autocontrast(image)


def _auto_gamma(image: Image.Image) -> Image.Image:
    """Pick a gamma that maps the mean intensity to mid-grey."""
    pixels = np.asarray(image.convert("L"), dtype=np.float64) / 255.0
    mean = float(pixels.mean())
    if mean <= 0.0 or mean >= 1.0:
        return image
    gamma = math.log(0.5) / math.log(mean)
    lut = np.clip(np.round(255.0 * np.power(np.arange(256) / 255.0, gamma)), 0, 255).astype(np.uint8)

    table = lut.tolist()
    bands = image.getbands()
    # Leave alpha untouched.
    full_table: list[int] = []
    for band in bands:
        full_table.extend(range(256) if band == "A" else table)
    return image.point(full_table)


def _encode(image: Image.Image, image_format: ImageFormat) -> bytes:
    buffer = io.BytesIO()
    if image_format is ImageFormat.JPEG:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, format=image_format.codec, quality=JPEG_QUALITY)
    else:
        image.save(buffer, format=image_format.codec)
    return buffer.getvalue()
