"""
快照布局引擎 - 基于采集快照计算生效样式与几何

职责：
1. 生效样式 = 父节点可继承属性 + 采集的级联结果 + 内联声明（内联总是生效）
2. 包围盒：采集的视口矩形，按内联 position/left/top/width/height/min-height 修正
3. 可滚动尺寸：自身盒与未被中间裁剪容器截断的后代盒的并集

测试要点：
- test_inline_overrides_cascade: 内联覆盖级联
- test_inherited_color: 继承属性
- test_fixed_position_rect: fixed 定位修正
- test_scroll_size_includes_overflow: 溢出内容计入滚动尺寸
- test_clipped_descendants_ignored: 裁剪容器内的后代不计入
"""

from __future__ import annotations

import re

from ..config import StyleSpec, load_style_spec
from ..interfaces import ILayoutEngine
from ..models import Element, Rect

_PX_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)(?:px)?\s*$")


def parse_px(value: str | None) -> float | None:
    """解析像素长度（'12px' / '12'），其余单位返回 None"""
    if not value:
        return None
    match = _PX_RE.match(value)
    return float(match.group(1)) if match else None


_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")


def parse_leading_number(value: str | None) -> float | None:
    """取值开头的数字并忽略单位（'100%' → 100，'none' → None）"""
    if not value:
        return None
    match = _LEADING_NUMBER_RE.match(value)
    return float(match.group(1)) if match else None


class SnapshotLayoutEngine(ILayoutEngine):
    """快照布局引擎实现"""

    def __init__(self, spec: StyleSpec | None = None):
        self.spec = spec or load_style_spec()

    def computed_style(self, element: Element) -> dict[str, str]:
        """计算生效样式"""
        style: dict[str, str] = {}
        if element.parent is not None:
            parent_style = self.computed_style(element.parent)
            for name in self.spec.inherited:
                if name in parent_style:
                    style[name] = parent_style[name]

        style.update(element.computed)

        for name, value in element.style.items():
            style[name] = value
            # overflow 简写展开到未单独声明的轴
            if name == "overflow":
                for axis in ("overflow-x", "overflow-y"):
                    if axis not in element.style:
                        style[axis] = value
        return style

    def bounding_rect(self, element: Element) -> Rect:
        """计算包围盒"""
        style = self.computed_style(element)
        if style.get("display") == "none":
            return Rect()

        rect = element.rect
        position = style.get("position", "static")
        left = self._inline_override(element, "left")
        top = self._inline_override(element, "top")

        if position == "fixed":
            rect = Rect(
                x=rect.x if left is None else left,
                y=rect.y if top is None else top,
                width=rect.width,
                height=rect.height,
            )
        elif position == "absolute" and element.parent is not None and (left is not None or top is not None):
            parent_rect = self.bounding_rect(element.parent)
            rect = Rect(
                x=rect.x if left is None else parent_rect.x + left,
                y=rect.y if top is None else parent_rect.y + top,
                width=rect.width,
                height=rect.height,
            )

        width = self._inline_override(element, "width")
        height = self._inline_override(element, "height")
        min_height = self._inline_override(element, "min-height")
        if width is not None:
            rect = rect.resize(width=width)
        if height is not None:
            rect = rect.resize(height=height)
        if min_height is not None and min_height > rect.height:
            rect = rect.resize(height=min_height)
        return rect

    def scroll_size(self, element: Element) -> tuple[float, float]:
        """计算完整可滚动尺寸（不含向左/向上的负向溢出）"""
        rect = self.bounding_rect(element)
        extent = rect
        for child in element.children:
            child_extent = self._visible_extent(child)
            if child_extent is not None:
                extent = extent.union(child_extent)

        width = max(element.scroll_width, rect.width, extent.right - rect.left)
        height = max(element.scroll_height, rect.height, extent.bottom - rect.top)
        return width, height

    def clips_overflow(self, element: Element) -> bool:
        style = self.computed_style(element)
        return any(
            self.spec.is_clipping(style.get(name, ""))
            for name in ("overflow", "overflow-x", "overflow-y")
        )

    def _visible_extent(self, element: Element) -> Rect | None:
        style = self.computed_style(element)
        if style.get("display") == "none":
            return None
        rect = self.bounding_rect(element)
        if self.clips_overflow(element):
            return None if rect.is_empty else rect
        extent = None if rect.is_empty else rect
        for child in element.children:
            child_extent = self._visible_extent(child)
            if child_extent is not None:
                extent = child_extent if extent is None else extent.union(child_extent)
        return extent

    @staticmethod
    def _inline_override(element: Element, name: str) -> float | None:
        """内联像素值；与采集值一致时视为未修改（采集矩形已反映该值）"""
        value = element.style.get_property_value(name)
        if not value or value == element.computed.get(name):
            return None
        return parse_px(value)
