from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .formats import OutputFormat


@dataclass(frozen=True)
class ImageDescriptor:
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class SourceImage:
    path: Path
    descriptor: ImageDescriptor
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Variant:
    source: Path
    width: int
    height: int
    format: OutputFormat
    filename: str
    url: str
    path: Path

    @property
    def srcset_entry(self) -> str:
        return f"{self.url} {self.width}w"


@dataclass(frozen=True)
class SourceEntry:
    type: str
    srcset: str


@dataclass(frozen=True)
class SourceSet:
    srcset: str
    fallback: str
    sources: tuple[SourceEntry, ...] = ()
    widths: tuple[int, ...] = ()
    variants: tuple[Variant, ...] = field(default=(), compare=False, repr=False)

    def source_for(self, mime_type: str) -> Optional[SourceEntry]:
        for entry in self.sources:
            if entry.type == mime_type:
                return entry
        return None
