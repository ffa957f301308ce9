"""Face-aware crop geometry.

Converts a normalized face bounding box into an absolute crop region whose
aspect ratio matches the requested output size.
"""

from __future__ import annotations

from dataclasses import dataclass

# Recentring divisor for the crop origin. Values below 2.0 move the crop
# left and up, keeping more of the frame above and left of the face.
RECENTER_DIVISOR: float = 1.5


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box as fractions (0.0-1.0) of the source dimensions.

    Missing width/height mean the full extent, missing left/top mean 0.0.
    """

    width: float | None = None
    height: float | None = None
    left: float | None = None
    top: float | None = None

    @property
    def width_fraction(self) -> float:
        return self.width if self.width is not None else 1.0

    @property
    def height_fraction(self) -> float:
        return self.height if self.height is not None else 1.0

    @property
    def left_fraction(self) -> float:
        return self.left if self.left is not None else 0.0

    @property
    def top_fraction(self) -> float:
        return self.top if self.top is not None else 0.0


@dataclass(frozen=True)
class CropRegion:
    """Absolute crop rectangle in source pixels. May extend past the image."""

    x: float
    y: float
    width: float
    height: float

    def pixel_box(self, image_width: int, image_height: int) -> tuple[int, int, int, int]:
        """Return ``(left, top, right, bottom)`` truncated and clamped to the image."""
        x = int(self.x)
        y = int(self.y)
        right = min(image_width, x + int(self.width))
        bottom = min(image_height, y + int(self.height))
        return max(0, x), max(0, y), right, bottom


def face_crop_region(
    box: BoundingBox,
    image_width: float,
    image_height: float,
    target_width: float | None = None,
    target_height: float | None = None,
    padding: float = 1.0,
) -> CropRegion:
    """Compute the crop that frames ``box`` at the target aspect ratio.

    Args:
        box: Normalized face bounding box.
        image_width: Source width in pixels.
        image_height: Source height in pixels.
        target_width: Requested output width; the source width when absent.
        target_height: Requested output height; the source height when absent.
        padding: Multiplier applied to the crop size (1.0 = tight crop).

    Returns:
        The padded crop region in source pixel coordinates.
    """
    box_w = box.width_fraction * image_width
    box_h = box.height_fraction * image_height

    desired_aspect = (target_width or image_width) / (target_height or image_height)

    if box_w > box_h:
        crop_w, crop_h = box_w, box_w / desired_aspect
    else:
        crop_w, crop_h = box_h * desired_aspect, box_h

    crop_w = min(crop_w, image_width)
    crop_h = min(crop_h, image_height)

    x = box.left_fraction * image_width - (padding - 1.0) * crop_w / 2 - (crop_w - box_w) / RECENTER_DIVISOR
    y = box.top_fraction * image_height - (padding - 1.0) * crop_h / 2 - (crop_h - box_h) / RECENTER_DIVISOR

    return CropRegion(x=x, y=y, width=crop_w * padding, height=crop_h * padding)
