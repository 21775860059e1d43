from __future__ import annotations

from collections.abc import Sequence

from .formats import OutputFormat, native_format, variant_filename, variant_url
from .options import ResolvedOptions
from .resolver import VariantPlan
from .types import SourceEntry, SourceSet, Variant


def join_srcset(variants: Sequence[Variant]) -> str:
    return ", ".join(v.srcset_entry for v in variants)


def fallback_format(src: str, formats: Sequence[OutputFormat]) -> OutputFormat:
    native = native_format(src)
    if native is not None and native in formats:
        return native
    return formats[0]


def fallback_url(src: str, plan: VariantPlan, options: ResolvedOptions) -> str:
    """URL of the smallest variant, derived from the naming formula rather than looked up."""
    fmt = fallback_format(src, plan.formats)
    filename = variant_filename(src, plan.smallest_width, fmt, options.asset_name_prefix)
    return variant_url(options.assets_dir, filename)


def assemble_source_set(
    src: str,
    plan: VariantPlan,
    rendered: Sequence[tuple[OutputFormat, Sequence[Variant]]],
    options: ResolvedOptions,
) -> SourceSet:
    sources: list[SourceEntry] = []
    variants: list[Variant] = []
    for fmt, fmt_variants in rendered:
        if not fmt_variants:
            continue
        sources.append(SourceEntry(type=fmt.mime_type, srcset=join_srcset(fmt_variants)))
        variants.extend(fmt_variants)

    native = native_format(src)
    main = None
    if native is not None:
        main = next((s for s in sources if s.type == native.mime_type), None)
    if main is None and sources:
        main = sources[0]

    return SourceSet(
        srcset=main.srcset if main is not None else "",
        fallback=fallback_url(src, plan, options),
        sources=tuple(sources),
        widths=plan.widths,
        variants=tuple(variants),
    )
