from .codec import ImageCodec, PillowCodec
from .variants import VariantRenderer, target_height

__all__ = [
    "ImageCodec",
    "PillowCodec",
    "VariantRenderer",
    "target_height",
]
