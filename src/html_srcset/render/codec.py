from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

from ..errors import SourceNotFoundError, UnreadableDimensionsError
from ..formats import OutputFormat
from ..types import ImageDescriptor, SourceImage

_UMASK = os.umask(0)
os.umask(_UMASK)


class ImageCodec(ABC):
    """Decode/encode backend used by the variant renderer."""

    @property
    @abstractmethod
    def codec_id(self) -> str: ...

    @abstractmethod
    def open(self, path: Path) -> SourceImage:
        """Read a source image once, raising if it is missing or has no usable size."""
        raise NotImplementedError

    @abstractmethod
    def encode(
        self,
        source: SourceImage,
        width: int,
        height: int,
        fmt: OutputFormat,
        quality: int,
        out_path: Path,
    ) -> None:
        """Resize the source to width x height and write it to out_path in fmt."""
        raise NotImplementedError


def _normalize_mode(im: "Image.Image") -> "Image.Image":
    if im.mode in ("RGB", "RGBA"):
        return im
    has_alpha = "A" in im.getbands() or "transparency" in im.info
    return im.convert("RGBA" if has_alpha else "RGB")


def _save_params(fmt: OutputFormat, quality: int) -> dict[str, Any]:
    if fmt is OutputFormat.PNG:
        return {"optimize": True}
    if fmt is OutputFormat.JPEG:
        return {"quality": quality, "optimize": True, "progressive": True}
    return {"quality": quality}


def write_atomic(im: "Image.Image", out_path: Path, fmt: OutputFormat, **params: Any) -> None:
    """Save through a temporary file in the target directory, then rename into place."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=out_path.parent, prefix=f".{out_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            im.save(f, format=fmt.pillow_format, **params)
        os.chmod(tmp_name, 0o666 & ~_UMASK)
        os.replace(tmp_name, out_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class PillowCodec(ImageCodec):
    @property
    def codec_id(self) -> str:
        return "pillow"

    def open(self, path: Path) -> SourceImage:
        if not path.is_file() or not os.access(path, os.R_OK):
            raise SourceNotFoundError(path)

        try:
            with Image.open(path) as im:
                width, height = im.size
                if width <= 0 or height <= 0:
                    raise UnreadableDimensionsError(path, f"reported size {width}x{height}")
                im.load()
                handle = _normalize_mode(im)
                if handle is im:
                    handle = im.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise UnreadableDimensionsError(path, str(e)) from e

        return SourceImage(path=path, descriptor=ImageDescriptor(width, height), handle=handle)

    def encode(
        self,
        source: SourceImage,
        width: int,
        height: int,
        fmt: OutputFormat,
        quality: int,
        out_path: Path,
    ) -> None:
        im = source.handle.resize((width, height), Image.Resampling.LANCZOS)
        if fmt is OutputFormat.JPEG and im.mode != "RGB":
            im = im.convert("RGB")
        write_atomic(im, out_path, fmt, **_save_params(fmt, quality))
