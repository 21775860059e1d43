from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from typing import Optional


class OutputFormat(str, Enum):
    """Output encodings in the order variants are generated and listed."""

    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"
    JPEG = "jpeg"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pillow_format(self) -> str:
        return self.value.upper()


EXTENSION_ALIASES = {"jpg": "jpeg"}


def format_from_extension(src: str) -> str:
    ext = PurePosixPath(src).suffix.lower().lstrip(".")
    return EXTENSION_ALIASES.get(ext, ext)


def native_format(src: str) -> Optional[OutputFormat]:
    try:
        return OutputFormat(format_from_extension(src))
    except ValueError:
        return None


def variant_filename(src: str, width: int, fmt: OutputFormat, prefix: str = "") -> str:
    base = PurePosixPath(src).stem
    return f"{prefix}{base}-{width}w.{fmt.value}"


def variant_url(assets_dir: str, filename: str) -> str:
    return f"/{assets_dir.strip('/')}/{filename}"
