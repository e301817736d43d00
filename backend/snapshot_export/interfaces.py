"""
模块接口契约 - 定义各协作方的抽象接口

设计原则：
1. 流水线与外部能力（布局/光栅化/文档写出/资源加载）通过接口通信
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from snapshot_export.interfaces import IRasterizer

    class MyRasterizer(IRasterizer):
        def render(self, root, options, on_clone=None) -> Bitmap:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .models import Bitmap, Element, LoadedAsset, Rect, RenderOptions, SnapshotDocument


# ============================================================================
# 节点树与布局接口
# ============================================================================

class ILayoutEngine(ABC):
    """布局引擎接口 - 提供节点的计算样式与几何信息"""

    @abstractmethod
    def computed_style(self, element: Element) -> dict[str, str]:
        """
        获取节点的生效样式

        Args:
            element: 节点

        Returns:
            属性名 → 解析后字符串值
        """
        ...

    @abstractmethod
    def bounding_rect(self, element: Element) -> Rect:
        """获取节点在视口坐标系中的包围盒"""
        ...

    @abstractmethod
    def scroll_size(self, element: Element) -> tuple[float, float]:
        """获取节点的完整可滚动尺寸 (width, height)"""
        ...


class IColorProbe(ABC):
    """颜色探针接口 - 将任意CSS颜色解析为标准RGB形式"""

    @abstractmethod
    def resolve(self, value: str) -> str:
        """
        解析颜色值

        Args:
            value: CSS颜色（含 lab/lch/oklab/oklch 等非标准编码）

        Returns:
            "rgb(r, g, b)" 形式的字符串

        Raises:
            ColorResolutionError: 无法解析
        """
        ...


# ============================================================================
# 资源/光栅化/文档接口
# ============================================================================

class IAssetLoader(ABC):
    """图片资源加载器接口"""

    @abstractmethod
    async def load(self, src: str) -> LoadedAsset:
        """
        加载并解码图片资源

        Args:
            src: 绝对化后的资源地址（data:/file/http(s)）

        Returns:
            已解码验证的资源内容

        Raises:
            AssetLoadError: 获取或解码失败
        """
        ...


CloneHook = Callable[["SnapshotDocument", "Element"], None]


class IRasterizer(ABC):
    """光栅化器接口 - 节点树 → 位图"""

    @abstractmethod
    def render(
        self,
        root: Element,
        options: RenderOptions,
        on_clone: CloneHook | None = None,
    ) -> Bitmap:
        """
        渲染节点树为单张位图

        Args:
            root: 已归一化的克隆根节点
            options: 缩放/背景色/尺寸/跨域策略
            on_clone: 预采集钩子，在内部复制出渲染用副本后调用一次

        Returns:
            位图（创建后不可变）

        Raises:
            RenderFailureError: 渲染失败
        """
        ...


class IDocument(ABC):
    """分页文档接口"""

    @abstractmethod
    def add_page(self) -> None:
        """追加新页（后续图片放置到该页）"""
        ...

    @abstractmethod
    def add_image(
        self,
        data: bytes,
        image_format: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        """在当前页放置图片（坐标为页面左上角原点，单位与创建时一致）"""
        ...

    @abstractmethod
    def save(self, filename: str) -> None:
        """保存文档"""
        ...


class IDocumentWriter(ABC):
    """文档写出器接口"""

    @abstractmethod
    def create_document(self, orientation: str, unit: str, page_format: str) -> IDocument:
        """创建空白文档（含第一页）"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class SnapshotExportError(Exception):
    """基础异常"""

    fatal = True


class SnapshotFormatError(SnapshotExportError):
    """快照文件无法解析或结构不合法"""
    pass


class ContentNotFoundError(SnapshotExportError):
    """根节点查找失败（克隆前中止）"""
    pass


class ZeroDimensionError(SnapshotExportError):
    """归一化后克隆尺寸为零（光栅化前中止）"""
    pass


class RenderFailureError(SnapshotExportError):
    """光栅化失败"""
    pass


class DocumentWriteError(SnapshotExportError):
    """文档写出失败"""
    pass


class ExportInProgressError(SnapshotExportError):
    """已有导出正在进行（单飞拒绝）"""
    pass


class AssetLoadError(SnapshotExportError):
    """资源加载/解码失败（不中断）"""

    fatal = False


class AssetTimeoutError(SnapshotExportError):
    """资源等待超时（不中断，放弃该资源）"""

    fatal = False


class ColorResolutionError(SnapshotExportError):
    """颜色解析失败（不中断，回退黑色）"""

    fatal = False
