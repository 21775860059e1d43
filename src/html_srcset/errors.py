from __future__ import annotations

from pathlib import Path
from typing import Optional


class SrcsetError(Exception):
    """Base class for every failure raised by the srcset pipeline."""


class SourceNotFoundError(SrcsetError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Image not found: {path}")


class UnreadableDimensionsError(SrcsetError):
    def __init__(self, path: Path, reason: str = ""):
        self.path = path
        message = f"Could not read image dimensions: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class RenderFailureError(SrcsetError):
    def __init__(
        self,
        path: Path,
        width: Optional[int] = None,
        fmt: Optional[str] = None,
        reason: str = "",
    ):
        self.path = path
        self.width = width
        self.format = fmt
        if width is not None and fmt is not None:
            message = f"Failed to render {fmt} variant at {width}w: {path}"
        else:
            message = f"Failed to render variants: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ParseFailureError(SrcsetError):
    pass


class ConfigurationError(SrcsetError):
    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
