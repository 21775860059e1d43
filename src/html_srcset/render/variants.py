from __future__ import annotations

import concurrent.futures as cf
import logging
import math
from typing import Optional

from ..errors import RenderFailureError, SrcsetError
from ..formats import OutputFormat, variant_filename, variant_url
from ..options import ResolvedOptions
from ..resolver import VariantPlan
from ..types import ImageDescriptor, SourceImage, Variant
from .codec import ImageCodec

logger = logging.getLogger(__name__)

RenderedFormats = list[tuple[OutputFormat, list[Variant]]]


def target_height(width: int, descriptor: ImageDescriptor) -> int:
    """Height matching the source aspect ratio, rounded half up, never below 1."""
    return max(1, math.floor(width / descriptor.aspect_ratio + 0.5))


class VariantRenderer:
    """Writes every (width, format) variant of one source image."""

    def __init__(self, codec: ImageCodec, options: ResolvedOptions, max_workers: int = 1):
        self.codec = codec
        self.options = options
        self.max_workers = max(1, max_workers)

    def plan_variant(self, source: SourceImage, src: str, width: int, fmt: OutputFormat) -> Variant:
        filename = variant_filename(src, width, fmt, self.options.asset_name_prefix)
        return Variant(
            source=source.path,
            width=width,
            height=target_height(width, source.descriptor),
            format=fmt,
            filename=filename,
            url=variant_url(self.options.assets_dir, filename),
            path=self.options.output_dir() / filename,
        )

    def _write(self, source: SourceImage, variant: Variant) -> Variant:
        try:
            self.codec.encode(
                source,
                variant.width,
                variant.height,
                variant.format,
                self.options.quality,
                variant.path,
            )
        except SrcsetError:
            raise
        except Exception as e:
            raise RenderFailureError(source.path, variant.width, variant.format.value, str(e)) from e
        logger.debug("Wrote %s (%dx%d)", variant.path, variant.width, variant.height)
        return variant

    def render(self, source: SourceImage, plan: VariantPlan, src: str) -> RenderedFormats:
        try:
            self.options.output_dir().mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RenderFailureError(source.path, reason=str(e)) from e
        planned = [self.plan_variant(source, src, width, fmt) for fmt, width in plan]

        if self.max_workers == 1 or len(planned) == 1:
            written = [self._write(source, v) for v in planned]
        else:
            written = self._write_concurrently(source, planned)

        rendered: RenderedFormats = []
        for fmt in plan.formats:
            rendered.append((fmt, [v for v in written if v.format is fmt]))
        return rendered

    def _write_concurrently(self, source: SourceImage, planned: list[Variant]) -> list[Variant]:
        with cf.ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = [ex.submit(self._write, source, v) for v in planned]
            cf.wait(futures)

        written: list[Variant] = []
        first_error: Optional[BaseException] = None
        for fut in futures:
            exc = fut.exception()
            if exc is not None:
                first_error = first_error or exc
                continue
            written.append(fut.result())
        if first_error is not None:
            raise first_error
        return written
