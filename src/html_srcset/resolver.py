from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .errors import ConfigurationError
from .formats import OutputFormat


@dataclass(frozen=True)
class VariantPlan:
    widths: tuple[int, ...]
    formats: tuple[OutputFormat, ...]

    @property
    def smallest_width(self) -> int:
        return min(self.widths)

    def __iter__(self):
        for fmt in self.formats:
            for width in self.widths:
                yield fmt, width

    def __len__(self) -> int:
        return len(self.widths) * len(self.formats)


def resolve_widths(intrinsic_width: int, requested: Iterable[int]) -> tuple[int, ...]:
    """Requested widths that fit the image, in requested order.

    Widths wider than the source are dropped rather than upscaled. When none
    fit, the intrinsic width is the only one generated.
    """
    widths: list[int] = []
    for w in requested:
        if w <= intrinsic_width and w not in widths:
            widths.append(w)
    return tuple(widths) if widths else (intrinsic_width,)


def resolve_formats(enabled: Iterable[OutputFormat]) -> tuple[OutputFormat, ...]:
    wanted = set(enabled)
    return tuple(fmt for fmt in OutputFormat if fmt in wanted)


def resolve_variants(
    intrinsic_width: int,
    requested_widths: Iterable[int],
    formats: Iterable[OutputFormat],
) -> VariantPlan:
    resolved_formats = resolve_formats(formats)
    if not resolved_formats:
        raise ConfigurationError("No output formats are enabled")
    return VariantPlan(
        widths=resolve_widths(intrinsic_width, requested_widths),
        formats=resolved_formats,
    )
