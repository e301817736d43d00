"""
内容过滤 - 从克隆中移除控件与样式指令节点

规则：
- 文本包含控件标记（Download PDF / Generating PDF / Loading）的按钮连同其直接包装节点移除；
  包装节点即克隆根、或包装内还有其它内容时只移除按钮本身
- 所有 <style> 节点移除，渲染仅由内联样式决定
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..models import Element

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """过滤统计"""
    removed_controls: int = 0
    removed_styles: int = 0


class ContentFilter:
    """内容过滤器"""

    def __init__(self, control_markers: list[str]):
        self.control_markers = list(control_markers)

    def is_control(self, element: Element) -> bool:
        if element.tag != "button":
            return False
        text = element.text_content
        return any(marker in text for marker in self.control_markers)

    def filter(self, root: Element) -> FilterResult:
        result = FilterResult()

        for button in root.find_all("button"):
            if not root.contains(button) or button is root:
                continue  # 已随包装节点移除
            if not self.is_control(button):
                continue
            wrapper = button.parent
            if wrapper is not None and wrapper is not root and self._only_controls(wrapper):
                wrapper.remove()
            else:
                button.remove()
            result.removed_controls += 1

        for style in root.find_all("style"):
            style.remove()
            result.removed_styles += 1

        logger.debug(
            f"过滤完成: 控件 {result.removed_controls} 个, 样式节点 {result.removed_styles} 个"
        )
        return result

    def _only_controls(self, wrapper: Element) -> bool:
        """包装节点除控件外不承载文本或图片"""
        controls = [c for c in wrapper.find_all("button") if self.is_control(c)]
        for el in wrapper.walk():
            if any(control.contains(el) for control in controls):
                continue
            if el.text.strip() or el.tag == "img":
                return False
        return True
