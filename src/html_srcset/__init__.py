from __future__ import annotations

from .errors import (
    ConfigurationError,
    ParseFailureError,
    RenderFailureError,
    SourceNotFoundError,
    SrcsetError,
    UnreadableDimensionsError,
)
from .formats import OutputFormat
from .options import ResolvedOptions, UserOptions, resolve_options
from .pipeline import SrcsetPipeline, generate_srcset
from .plugin import HtmlSrcsetPlugin, transform_html
from .types import SourceSet

__all__ = [
    "ConfigurationError",
    "HtmlSrcsetPlugin",
    "OutputFormat",
    "ParseFailureError",
    "RenderFailureError",
    "ResolvedOptions",
    "SourceNotFoundError",
    "SourceSet",
    "SrcsetError",
    "SrcsetPipeline",
    "UnreadableDimensionsError",
    "UserOptions",
    "generate_srcset",
    "resolve_options",
    "transform_html",
]
