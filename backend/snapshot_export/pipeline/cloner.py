"""
快照克隆器 - 生成与交互文档隔离的克隆树

职责：
1. 按稳定查找键定位源根节点（找不到 → ContentNotFoundError，不产生克隆）
2. 深拷贝源子树，定位到源节点视口坐标、置于所有交互内容之后
3. 尺寸取源节点完整可滚动范围（而非可见视口）
4. 挂载到文档后备存储；清理阶段无条件摘除

测试要点：
- test_locate_missing_root: 根节点缺失
- test_clone_decoration: 克隆根修饰
- test_cleanup_removes_clone: 清理摘除
"""

from __future__ import annotations

import logging

from ..config.runtime_config import ExportConfig
from ..interfaces import ContentNotFoundError, ILayoutEngine
from ..models import Element, SnapshotDocument

logger = logging.getLogger(__name__)


class SnapshotCloner:
    """快照克隆器"""

    def __init__(self, config: ExportConfig, engine: ILayoutEngine):
        self.config = config
        self.engine = engine

    def locate(self, document: SnapshotDocument, root_key: str | None = None) -> Element:
        """定位源根节点"""
        key = root_key or self.config.root_key
        source = document.get_element_by_id(key)
        if source is None:
            raise ContentNotFoundError(f"未找到导出内容: #{key}，请刷新页面后重试")
        return source

    def clone(self, document: SnapshotDocument, source: Element) -> Element:
        """复制源子树、修饰克隆根并挂载到文档"""
        rect = self.engine.bounding_rect(source)
        computed = self.engine.computed_style(source)
        scroll_width, scroll_height = self.engine.scroll_size(source)

        clone = source.clone()
        full_width = max(scroll_width, rect.width)
        full_height = max(scroll_height, rect.height)

        style = clone.style
        style.set_property("position", "fixed")
        style.set_property("left", f"{rect.left:g}px")
        style.set_property("top", f"{rect.top:g}px")
        style.set_property("width", f"{full_width:g}px")
        style.set_property("height", "auto")
        style.set_property("min-height", f"{full_height:g}px")
        style.set_property("max-width", "none")
        style.set_property("overflow", "visible")
        style.set_property(
            "background-color",
            computed.get("background-color") or self.config.fallback_background,
        )
        style.set_property("z-index", str(self.config.clone_z_index))
        style.set_property("pointer-events", "none")
        clone.id = self.config.clone_id

        document.body.append_child(clone)
        logger.debug(f"克隆已挂载: #{clone.id} {full_width:g}x{full_height:g}")
        return clone

    def cleanup(self, document: SnapshotDocument, clone: Element | None = None) -> int:
        """
        摘除克隆（幂等）

        除传入的克隆外，还按克隆 id 查找残留节点，返回摘除数量。
        """
        removed = 0
        if clone is not None and document.is_attached(clone):
            clone.remove()
            removed += 1

        leftover = document.get_element_by_id(self.config.clone_id)
        while leftover is not None and leftover is not document.body:
            leftover.remove()
            removed += 1
            leftover = document.get_element_by_id(self.config.clone_id)
        return removed
