from __future__ import annotations

import logging
from typing import Callable, Optional

from .assembler import assemble_source_set
from .errors import SrcsetError, UnreadableDimensionsError
from .options import ResolvedOptions
from .render.codec import ImageCodec, PillowCodec
from .render.variants import VariantRenderer
from .resolver import VariantPlan, resolve_variants
from .types import SourceImage, SourceSet, Variant

logger = logging.getLogger(__name__)

SourceSetHook = Callable[[str, SourceSet], None]


class SrcsetPipeline:
    """Resolve, render and assemble the responsive variants of one source image."""

    def __init__(
        self,
        options: ResolvedOptions,
        codec: Optional[ImageCodec] = None,
        max_workers: int = 1,
        on_source_set: Optional[SourceSetHook] = None,
    ):
        self.options = options
        self.codec = codec or PillowCodec()
        self.renderer = VariantRenderer(self.codec, options, max_workers=max_workers)
        self.on_source_set = on_source_set

    def _resolve(self, src: str) -> tuple[SourceImage, VariantPlan]:
        path = self.options.source_path(src)
        try:
            source = self.codec.open(path)
        except SrcsetError:
            raise
        except Exception as e:
            raise UnreadableDimensionsError(path, str(e)) from e
        plan = resolve_variants(
            source.descriptor.width, self.options.output_widths, self.options.output_formats
        )
        return source, plan

    def plan(self, src: str) -> list[Variant]:
        """Variants that generate() would write for src, without rendering anything."""
        source, plan = self._resolve(src)
        return [self.renderer.plan_variant(source, src, width, fmt) for fmt, width in plan]

    def generate(self, src: str) -> SourceSet:
        source, plan = self._resolve(src)
        logger.debug(
            "Rendering %s with %s: widths=%s formats=%s",
            src,
            self.codec.codec_id,
            list(plan.widths),
            [f.value for f in plan.formats],
        )
        rendered = self.renderer.render(source, plan, src)
        source_set = assemble_source_set(src, plan, rendered, self.options)
        if self.on_source_set is not None:
            self.on_source_set(src, source_set)
        return source_set


def generate_srcset(
    src: str,
    options: ResolvedOptions,
    codec: Optional[ImageCodec] = None,
    max_workers: int = 1,
) -> SourceSet:
    return SrcsetPipeline(options, codec=codec, max_workers=max_workers).generate(src)
