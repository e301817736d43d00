"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Element/SnapshotDocument: 可视树与克隆树
- StyleRecord: 单节点解析后的内联样式
- AssetHandle: 图片资源生命周期
- Bitmap: 光栅化结果
- PageGeometry/PageLayout/PageSlice: 分页
- ExportJob: 导出任务状态
"""

from .asset import (
    AssetHandle,
    AssetKind,
    AssetState,
    LoadedAsset,
    decode_data_uri,
    extract_background_url,
)
from .bitmap import Bitmap, RenderOptions
from .dom import Element, InlineStyle, SnapshotDocument
from .geometry import Rect
from .job import ExportJob, ExportProgress, ExportState, ExportStatus
from .page import PageGeometry, PageLayout, PageSlice
from .style import StyleDeclaration, StyleRecord

__all__ = [
    "Rect",
    "Element",
    "InlineStyle",
    "SnapshotDocument",
    "StyleDeclaration",
    "StyleRecord",
    "AssetHandle",
    "AssetKind",
    "AssetState",
    "LoadedAsset",
    "decode_data_uri",
    "extract_background_url",
    "Bitmap",
    "RenderOptions",
    "PageGeometry",
    "PageLayout",
    "PageSlice",
    "ExportJob",
    "ExportProgress",
    "ExportState",
    "ExportStatus",
]
