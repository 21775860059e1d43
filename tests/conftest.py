from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from html_srcset.errors import SourceNotFoundError
from html_srcset.formats import OutputFormat
from html_srcset.render.codec import ImageCodec
from html_srcset.types import ImageDescriptor, SourceImage


@dataclass(frozen=True)
class EncodeCall:
    width: int
    height: int
    format: OutputFormat
    quality: int
    out_path: Path


class RecordingCodec(ImageCodec):
    """Codec double: fixed dimensions per file name, records every encode."""

    def __init__(
        self,
        size: tuple[int, int] = (1920, 1080),
        sizes: Optional[dict[str, tuple[int, int]]] = None,
        missing: Optional[set[str]] = None,
        fail_on: Optional[set[tuple[int, OutputFormat]]] = None,
    ):
        self.size = size
        self.sizes = sizes or {}
        self.missing = missing or set()
        self.fail_on = fail_on or set()
        self.opened: list[Path] = []
        self.calls: list[EncodeCall] = []
        self._lock = threading.Lock()

    @property
    def codec_id(self) -> str:
        return "recording"

    def open(self, path: Path) -> SourceImage:
        if path.name in self.missing:
            raise SourceNotFoundError(path)
        self.opened.append(path)
        w, h = self.sizes.get(path.name, self.size)
        return SourceImage(path=path, descriptor=ImageDescriptor(w, h))

    def encode(self, source, width, height, fmt, quality, out_path):
        with self._lock:
            self.calls.append(EncodeCall(width, height, fmt, quality, out_path))
        if (width, fmt) in self.fail_on:
            raise OSError("disk full")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(b"variant")


def _make_image(path: Path, size: tuple[int, int], mode: str = "RGB", color=(120, 60, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    Image.new(mode, size, color).save(path)
    return path


@pytest.fixture
def recording_codec() -> RecordingCodec:
    return RecordingCodec()


@pytest.fixture
def codec_factory():
    return RecordingCodec


@pytest.fixture
def image_factory():
    return _make_image


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A project root with a public/ directory of source images."""
    public = tmp_path / "public"
    _make_image(public / "hero.jpg", (800, 400))
    _make_image(public / "logo.png", (200, 100), mode="RGBA")
    return tmp_path
