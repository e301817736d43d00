"""
样式归一化 - 在克隆树上内联全部视觉属性并修正几何

职责：
1. 约束释放：小于克隆根完整滚动宽度的 max-width 置为 none
2. 样式内联：逐节点 resolve_style → StyleRecord → 内联（!important）
3. 文本颜色复核：文本标签的颜色必须非透明
4. 变换展平：绝对定位且有非恒等变换的节点，改写为相对父节点的 left/top
5. 溢出放宽：根节点，以及裁剪且存在越界绝对/固定定位子节点的容器

测试要点：
- test_color_totality: 文本节点颜色非透明
- test_oklch_probe_failure_black: 探针失败 → #000000
- test_flatten_absolute_transform: 变换展平
- test_widen_clipping_container: 溢出放宽
- test_relieve_max_width: max-width 释放
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import StyleSpec, load_style_spec
from ..dom.layout import SnapshotLayoutEngine, parse_leading_number
from ..interfaces import IColorProbe, ILayoutEngine
from ..models import Element, StyleRecord
from ..models.dom import IMPORTANT
from .colors import CssColorProbe, convert_color_to_hex
from .resolver import DEFAULT_TEXT_COLOR, resolve_style

logger = logging.getLogger(__name__)

_OVERFLOW_PROPS = ("overflow", "overflow-x", "overflow-y")


@dataclass
class NormalizationResult:
    """归一化统计"""
    records: dict[int, StyleRecord] = field(default_factory=dict)
    relieved: int = 0
    recolored: int = 0
    flattened: int = 0
    widened: int = 0

    @property
    def inlined(self) -> int:
        return len(self.records)


class StyleNormalizer:
    """样式归一化器"""

    def __init__(
        self,
        engine: ILayoutEngine | None = None,
        probe: IColorProbe | None = None,
        spec: StyleSpec | None = None,
    ):
        self.spec = spec or load_style_spec()
        self.engine = engine or SnapshotLayoutEngine(self.spec)
        self.probe = probe or CssColorProbe()

    def normalize(self, root: Element) -> NormalizationResult:
        """执行全部样式阶段（不含同步屏障，由流水线在阶段间插入）"""
        result = NormalizationResult()
        result.relieved = self.relieve_constraints(root)
        result.records = self.inline_styles(root)
        result.recolored = self.ensure_text_colors(root)
        result.flattened = self.flatten_transforms(root)
        result.widened = self.widen_overflow(root)
        return result

    # === 约束释放 ===

    def relieve_constraints(self, root: Element) -> int:
        """移除限制宽内容的 max-width"""
        full_width, _ = self.engine.scroll_size(root)
        count = 0
        for el in root.iter_descendants():
            max_width = parse_leading_number(self.engine.computed_style(el).get("max-width"))
            if max_width is not None and max_width < full_width:
                el.style.set_property("max-width", "none", IMPORTANT)
                count += 1
        return count

    # === 样式内联 ===

    def inline_styles(self, root: Element) -> dict[int, StyleRecord]:
        """
        先序遍历逐节点计算并写入样式记录

        先计算、后写入：每个节点的记录只依赖其祖先已写入的颜色，
        因此遍历顺序固定时结果确定。
        """
        records: dict[int, StyleRecord] = {}
        colors: dict[int, str] = {}
        for el in root.walk():
            ancestor_color = colors.get(id(el.parent)) if el.parent is not None else None
            record = resolve_style(el, self.engine, self.spec, self.probe, ancestor_color)
            record.apply_to(el.style)
            records[id(el)] = record
            colors[id(el)] = record.get("color") or DEFAULT_TEXT_COLOR
        logger.debug(f"内联样式节点数: {len(records)}")
        return records

    def ensure_text_colors(self, root: Element) -> int:
        """文本标签颜色复核，返回改写数量"""
        text_tags = set(self.spec.text_tags)
        count = 0
        for el in root.walk():
            if el.tag not in text_tags:
                continue
            color = self.engine.computed_style(el).get("color", "").strip()
            if color and not self.spec.is_transparent(color):
                if color.startswith(("rgb", "#")):
                    fixed = color
                else:
                    fixed = convert_color_to_hex(color, self.probe)
            else:
                fixed = self._parent_color(el)
            if el.style.get_property_value("color") != fixed:
                count += 1
            el.style.set_property("color", fixed, IMPORTANT)
        return count

    def _parent_color(self, el: Element) -> str:
        if el.parent is None:
            return DEFAULT_TEXT_COLOR
        parent_color = self.engine.computed_style(el.parent).get("color", "")
        if parent_color and not self.spec.is_transparent(parent_color):
            return parent_color
        return DEFAULT_TEXT_COLOR

    # === 变换展平 ===

    def flatten_transforms(self, root: Element) -> int:
        """非恒等变换的绝对定位节点 → 显式 left/top"""
        count = 0
        for el in root.iter_descendants():
            style = self.engine.computed_style(el)
            transform = style.get("transform", "none")
            if not transform or self.spec.is_identity_transform(transform):
                continue
            if style.get("position") != "absolute" or el.parent is None:
                continue

            rect = self.engine.bounding_rect(el)
            parent_rect = self.engine.bounding_rect(el.parent)
            el.style.set_property("position", "absolute", IMPORTANT)
            el.style.set_property("left", f"{rect.left - parent_rect.left:g}px", IMPORTANT)
            el.style.set_property("top", f"{rect.top - parent_rect.top:g}px", IMPORTANT)
            el.style.set_property("transform", "none", IMPORTANT)
            el.style.set_property("margin", "0", IMPORTANT)
            for side in ("top", "right", "bottom", "left"):
                el.style.set_property(f"margin-{side}", "0px", IMPORTANT)
            count += 1
        return count

    # === 溢出放宽 ===

    def widen_overflow(self, root: Element) -> int:
        """根节点总是可见；裁剪容器仅在存在越界的绝对/固定定位子节点时放宽"""
        self._set_visible(root)
        count = 0
        for el in root.iter_descendants():
            if not self._clips(el):
                continue
            if self._has_escaping_child(el):
                self._set_visible(el)
                count += 1
        return count

    def _clips(self, el: Element) -> bool:
        style = self.engine.computed_style(el)
        return any(self.spec.is_clipping(style.get(name, "")) for name in _OVERFLOW_PROPS)

    def _has_escaping_child(self, el: Element) -> bool:
        box = self.engine.bounding_rect(el)
        for child in el.children:
            position = self.engine.computed_style(child).get("position")
            if position not in ("absolute", "fixed"):
                continue
            child_box = self.engine.bounding_rect(child)
            if not child_box.is_empty and child_box.extends_beyond(box):
                return True
        return False

    @staticmethod
    def _set_visible(el: Element) -> None:
        for name in _OVERFLOW_PROPS:
            el.style.set_property(name, "visible", IMPORTANT)
