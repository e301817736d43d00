"""
样式层 - 颜色规整、单节点样式解析与克隆树归一化
"""

from .colors import BLACK_HEX, CssColorProbe, convert_color_to_hex, rgb_to_hex
from .normalizer import NormalizationResult, StyleNormalizer
from .resolver import canonicalize_colors, resolve_style, resolve_text_color

__all__ = [
    "BLACK_HEX",
    "CssColorProbe",
    "convert_color_to_hex",
    "rgb_to_hex",
    "resolve_style",
    "resolve_text_color",
    "canonicalize_colors",
    "StyleNormalizer",
    "NormalizationResult",
]
