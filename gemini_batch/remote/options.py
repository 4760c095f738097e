"""Image model and generation options with CLI/YAML string parsing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gemini_batch.utils.errors import ConfigurationError, InputError


class ImageModel(Enum):
    """Supported image generation models."""

    GEMINI_25_FLASH = "gemini-2.5-flash-image"
    GEMINI_3_PRO = "gemini-3-pro-image-preview"

    @property
    def supports_image_config(self) -> bool:
        return self is ImageModel.GEMINI_3_PRO

    @classmethod
    def parse(cls, value: str) -> ImageModel:
        key = value.lower()
        if key in ("2.5-flash", "flash", "gemini-2.5-flash-image"):
            return cls.GEMINI_25_FLASH
        if key in ("3pro", "3-pro", "pro", "gemini-3-pro-image-preview"):
            return cls.GEMINI_3_PRO
        raise ConfigurationError(f"Unknown model: {value}. Use '2.5-flash' or '3pro'")


class ImageSize(Enum):
    K1 = "1K"
    K2 = "2K"
    K4 = "4K"

    @classmethod
    def parse(cls, value: str) -> ImageSize:
        # Uppercase K is required by the API.
        for size in cls:
            if size.value == value:
                return size
        raise ConfigurationError(
            f"Invalid image size: {value}. Must be 1K, 2K, or 4K (uppercase K required)"
        )


_ASPECT_ALIASES = {
    "square": "1:1",
    "wide": "16:9",
    "tall": "9:16",
    "standard": "4:3",
    "portrait": "3:4",
}


class AspectRatio(Enum):
    SQUARE = "1:1"
    WIDE = "16:9"
    TALL = "9:16"
    STANDARD = "4:3"
    PORTRAIT = "3:4"

    @classmethod
    def parse(cls, value: str) -> AspectRatio:
        try:
            return cls(_ASPECT_ALIASES.get(value, value))
        except ValueError:
            raise ConfigurationError(
                f"Invalid aspect ratio: {value}. Use 1:1, 16:9, 9:16, 4:3, or 3:4"
            ) from None


@dataclass(frozen=True)
class ImageOptions:
    """Per-request image configuration (Gemini 3 Pro only)."""

    size: ImageSize | None = None
    aspect_ratio: AspectRatio | None = None

    @classmethod
    def parse(cls, size: str | None, aspect: str | None) -> ImageOptions:
        return cls(
            size=ImageSize.parse(size) if size else None,
            aspect_ratio=AspectRatio.parse(aspect) if aspect else None,
        )

    @property
    def is_empty(self) -> bool:
        return self.size is None and self.aspect_ratio is None

    def validate_for(self, model: ImageModel) -> None:
        if not self.is_empty and not model.supports_image_config:
            raise InputError(
                "Image config (size/aspect) only supported with Gemini 3 Pro model"
            )

    def to_api(self) -> dict[str, str]:
        return {
            "aspectRatio": (self.aspect_ratio or AspectRatio.SQUARE).value,
            "imageSize": (self.size or ImageSize.K1).value,
        }
