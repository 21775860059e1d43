from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError, ParseFailureError
from .filters import should_process
from .markup import DEFAULT_SIZES, MarkupRewriter, RewriteResult, has_markers
from .options import OptionsInput, ResolvedOptions, find_config, load_config, resolve_options
from .pipeline import SourceSetHook, SrcsetPipeline
from .render.codec import ImageCodec, PillowCodec

logger = logging.getLogger(__name__)


class HtmlSrcsetPlugin:
    """Per-document transform hook: rewrites ``?srcset`` image references.

    Options are resolved and validated when the plugin is created. Filesystem
    roots arrive later through ``configure``; nothing touches the filesystem
    before that.
    """

    name = "html-srcset"

    def __init__(
        self,
        options: OptionsInput = None,
        codec: Optional[ImageCodec] = None,
        max_workers: int = 1,
        default_sizes: str = DEFAULT_SIZES,
        on_source_set: Optional[SourceSetHook] = None,
    ):
        self.options: ResolvedOptions = resolve_options(options)
        self.codec = codec or PillowCodec()
        self.max_workers = max_workers
        self.default_sizes = default_sizes
        self.on_source_set = on_source_set
        self._pipeline: Optional[SrcsetPipeline] = None

    @classmethod
    def from_config_file(cls, config_path: Optional[Path] = None, **kwargs) -> "HtmlSrcsetPlugin":
        if config_path is None:
            config_path = find_config()
        if config_path is None:
            return cls(**kwargs)
        return cls(load_config(config_path), **kwargs)

    @property
    def configured(self) -> bool:
        return self._pipeline is not None

    def configure(
        self,
        root: str | Path,
        public_dir: str | Path = "public",
        assets_dir: Optional[str] = None,
        out_dir: Optional[str] = None,
    ) -> None:
        self.options = self.options.with_roots(root, public_dir, assets_dir=assets_dir, out_dir=out_dir)
        self._pipeline = SrcsetPipeline(
            self.options,
            codec=self.codec,
            max_workers=self.max_workers,
            on_source_set=self.on_source_set,
        )

    def should_process(self, path: str) -> bool:
        return should_process(path, self.options.include, self.options.exclude)

    def transform_document(self, html: str, path: str) -> Optional[RewriteResult]:
        """Rewrite one document, or return None when the filter excludes it."""
        if not self.should_process(path):
            logger.debug("Skipping %s (excluded)", path)
            return None
        if not has_markers(html):
            return RewriteResult(html)
        if self._pipeline is None:
            raise ConfigurationError(
                f"{self.name}: transform called for {path} before configure()"
            )

        rewriter = MarkupRewriter(self._pipeline.generate, self.default_sizes)
        try:
            result = rewriter.rewrite(html)
        except ParseFailureError as e:
            logger.error("Error processing HTML %s: %s", path, e)
            return RewriteResult(html)

        if result.failures:
            logger.warning("%s: %d image(s) left unchanged", path, len(result.failures))
        logger.info("%s: rewrote %d element(s)", path, result.rewritten)
        return result

    def transform(self, html: str, path: str) -> str:
        result = self.transform_document(html, path)
        return html if result is None else result.html


def transform_html(
    html: str,
    path: str,
    options: OptionsInput = None,
    root: str | Path = ".",
    public_dir: str | Path = "public",
    codec: Optional[ImageCodec] = None,
) -> str:
    plugin = HtmlSrcsetPlugin(options, codec=codec)
    plugin.configure(root, public_dir)
    return plugin.transform(html, path)
