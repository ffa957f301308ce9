"""Transform parameters parsed from the request query string."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pixgate.errors import InvalidParams

if TYPE_CHECKING:
    from collections.abc import Mapping


class ImageFormat(StrEnum):
    PNG = "png"
    JPEG = "jpeg"

    @classmethod
    def parse(cls, value: str) -> ImageFormat:
        """Resolve a query value, accepting ``jpg`` as an alias for JPEG."""
        normalized = value.strip().lower()
        if normalized == "jpg":
            return cls.JPEG
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidParams(f"unsupported format: {value!r}") from None

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def codec(self) -> str:
        """Format name understood by Pillow's ``Image.save``."""
        return self.value.upper()


_FLAG_FIELDS = ("blur", "sharpen", "enhance", "facecrop")
_QUERY_FIELDS = ("w", "h", "format", "facepad", *_FLAG_FIELDS)


class TransformParams(BaseModel):
    """Immutable set of transforms requested for one image."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    w: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    h: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    format: ImageFormat = ImageFormat.JPEG
    blur: bool = False
    sharpen: bool = False
    enhance: bool = False
    facecrop: bool = False
    facepad: float | None = Field(default=None, gt=0, allow_inf_nan=False)

    @field_validator(*_FLAG_FIELDS, mode="before")
    @classmethod
    def _bare_flag_is_true(cls, value: Any) -> Any:
        # ``?blur`` arrives as an empty string and means ``blur=true``.
        if isinstance(value, str) and value == "":
            return True
        return value

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ImageFormat.parse(value)
        return value

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> TransformParams:
        """Build parameters from raw query values, ignoring unrelated keys.

        Raises:
            InvalidParams: If any known parameter has a malformed value.
        """
        data = {name: query[name] for name in _QUERY_FIELDS if name in query}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise InvalidParams(f"invalid image parameters ({details})") from None

    def check_output_size(self, max_pixels: int) -> None:
        """Reject requested dimensions that alone exceed ``max_pixels``.

        A missing side counts as one pixel, so this only catches sizes that are
        too large whatever the source aspect ratio turns out to be.

        Raises:
            InvalidParams: If the requested output area is above the limit.
        """
        width = round(self.w) if self.w is not None else 1
        height = round(self.h) if self.h is not None else 1
        if width * height > max_pixels:
            raise InvalidParams(f"requested size is above the {max_pixels} pixel limit")

    @property
    def padding(self) -> float:
        """Face padding factor, 1.0 (no padding) when not requested."""
        return self.facepad if self.facepad is not None else 1.0

    def cacheable_param_key(self) -> str:
        """Return the canonical serialization used to derive cache keys.

        Every field is written, absent values as ``null``, with keys sorted so
        the result does not depend on how the instance was constructed.
        """
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
