"""
可视树层 - 快照加载、布局计算与实时采集

- snapshot_loader: 快照文件 → SnapshotDocument
- layout: 生效样式/包围盒/滚动尺寸
- capture: 无头浏览器采集快照（可选依赖 playwright）
"""

from .capture import capture_snapshot
from .layout import SnapshotLayoutEngine, parse_leading_number, parse_px
from .snapshot_loader import document_from_dict, load_snapshot, save_snapshot

__all__ = [
    "SnapshotLayoutEngine",
    "parse_px",
    "parse_leading_number",
    "load_snapshot",
    "save_snapshot",
    "document_from_dict",
    "capture_snapshot",
]
