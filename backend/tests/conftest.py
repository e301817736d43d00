"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(spec, sample_document):
        assert sample_document.get_element_by_id("pdf-content") is not None
"""

from __future__ import annotations

import asyncio
import io
import math
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest
from PIL import Image

from snapshot_export.config import RuntimeConfig, StyleSpec, load_style_spec
from snapshot_export.config.runtime_config import BarrierConfig, RasterConfig, TimeoutConfig
from snapshot_export.dom import SnapshotLayoutEngine, document_from_dict
from snapshot_export.interfaces import (
    AssetLoadError,
    ColorResolutionError,
    IAssetLoader,
    IColorProbe,
    IDocument,
    IDocumentWriter,
    IRasterizer,
    RenderFailureError,
)
from snapshot_export.models import Bitmap, LoadedAsset, SnapshotDocument
from snapshot_export.pipeline import ExportManager, ExportPipeline


def make_png(color: tuple[int, int, int] = (0, 255, 0), size: tuple[int, int] = (4, 4)) -> bytes:
    """生成纯色PNG"""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


# ============================================================================
# 协作方替身
# ============================================================================

class FakeAssetLoader(IAssetLoader):
    """按来源返回纯色图片；可指定失败或永不完成的来源"""

    def __init__(self, failing: tuple[str, ...] = (), hanging: tuple[str, ...] = ()):
        self.failing = set(failing)
        self.hanging = set(hanging)
        self.requested: list[str] = []

    async def load(self, src: str) -> LoadedAsset:
        self.requested.append(src)
        if src in self.hanging:
            await asyncio.Event().wait()
        if src in self.failing:
            raise AssetLoadError(f"加载失败: {src}")
        return LoadedAsset(data=make_png(), mime="image/png")


class FailingProbe(IColorProbe):
    """总是解析失败的颜色探针"""

    def resolve(self, value: str) -> str:
        raise ColorResolutionError(f"无法解析: {value}")


class FakeRasterizer(IRasterizer):
    """按 尺寸×缩放 生成白色位图，记录渲染参数"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[Any] = []

    def render(self, root, options, on_clone=None) -> Bitmap:
        self.calls.append(options)
        if self.fail:
            raise RenderFailureError("模拟光栅化失败")
        size = (math.ceil(options.width * options.scale), math.ceil(options.height * options.scale))
        return Bitmap(Image.new("RGB", size, "white"))


class RecordingDocument(IDocument):
    """记录放置操作的文档"""

    def __init__(self):
        self.pages: list[list[tuple]] = [[]]
        self.saved: list[str] = []

    def add_page(self) -> None:
        self.pages.append([])

    def add_image(self, data, image_format, x, y, width, height) -> None:
        self.pages[-1].append((image_format, x, y, width, height, len(data)))

    def save(self, filename: str) -> None:
        self.saved.append(filename)


class RecordingWriter(IDocumentWriter):
    def __init__(self):
        self.documents: list[RecordingDocument] = []

    def create_document(self, orientation: str, unit: str, page_format: str) -> RecordingDocument:
        document = RecordingDocument()
        self.documents.append(document)
        return document


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def spec() -> StyleSpec:
    """加载样式属性规范（会话级别缓存）"""
    return load_style_spec()


@pytest.fixture
def engine(spec: StyleSpec) -> SnapshotLayoutEngine:
    return SnapshotLayoutEngine(spec)


@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（屏障为零、超时缩短）"""
    return RuntimeConfig(
        output_dir=temp_dir,
        raster=RasterConfig(scale=1.0, background_color="#ffffff"),
        timeouts=TimeoutConfig(asset_load_ms=200),
        barriers=BarrierConfig(style_settle_ms=0, transform_settle_ms=0, asset_settle_ms=0),
    )


# ============================================================================
# 快照 Fixtures
# ============================================================================

def build_sample_snapshot() -> dict[str, Any]:
    """
    示例快照

    #pdf-content 位于 (100, 50)，800×600，包含：
    - 非标准颜色标题、透明颜色且受 max-width 约束的段落
    - overflow:hidden 卡片，内含越界的绝对定位变换徽标
    - 相对路径图片
    - 仅包含下载按钮的包装节点、<style> 节点
    """
    return {
        "viewport": {"width": 1280, "height": 800},
        "root": {
            "tag": "body",
            "computed": {"display": "block", "color": "rgb(0, 0, 0)", "font-size": "16px"},
            "rect": {"x": 0, "y": 0, "width": 1280, "height": 800},
            "scroll": {"width": 1280, "height": 800},
            "children": [
                {
                    "tag": "div",
                    "attrs": {"id": "pdf-content", "class": "report"},
                    "computed": {
                        "display": "block",
                        "position": "static",
                        "color": "rgb(20, 20, 20)",
                        "background-color": "rgb(255, 255, 255)",
                        "width": "800px",
                        "height": "600px",
                        "left": "auto",
                        "top": "auto",
                    },
                    "rect": {"x": 100, "y": 50, "width": 800, "height": 600},
                    "scroll": {"width": 800, "height": 600},
                    "children": [
                        {
                            "tag": "style",
                            "text": ".report h1 { color: oklch(60% 0.1 200); }",
                            "computed": {"display": "none"},
                        },
                        {
                            "tag": "h1",
                            "text": "年度报告",
                            "computed": {
                                "display": "block",
                                "color": "oklch(60% 0.1 200)",
                                "font-size": "24px",
                                "width": "800px",
                            },
                            "rect": {"x": 100, "y": 50, "width": 800, "height": 40},
                        },
                        {
                            "tag": "p",
                            "text": "季度营收持续增长",
                            "computed": {
                                "display": "block",
                                "color": "transparent",
                                "max-width": "600px",
                                "width": "600px",
                            },
                            "rect": {"x": 100, "y": 100, "width": 600, "height": 40},
                        },
                        {
                            "tag": "div",
                            "attrs": {"class": "card"},
                            "computed": {
                                "display": "block",
                                "position": "relative",
                                "overflow": "hidden",
                                "overflow-x": "hidden",
                                "overflow-y": "hidden",
                                "background-color": "rgb(240, 240, 240)",
                                "border-top-style": "solid",
                                "border-top-width": "2px",
                                "border-top-color": "lab(50 20 30)",
                            },
                            "rect": {"x": 100, "y": 160, "width": 300, "height": 200},
                            "children": [
                                {
                                    "tag": "span",
                                    "attrs": {"class": "badge"},
                                    "text": "NEW",
                                    "computed": {
                                        "display": "inline-block",
                                        "position": "absolute",
                                        "left": "300px",
                                        "top": "0px",
                                        "transform": "matrix(1, 0, 0, 1, -10, -10)",
                                        "color": "rgb(255, 255, 255)",
                                        "background-color": "rgb(255, 0, 0)",
                                    },
                                    "rect": {"x": 390, "y": 150, "width": 40, "height": 20},
                                },
                                {
                                    "tag": "p",
                                    "text": "卡片内容",
                                    "computed": {"display": "block"},
                                    "rect": {"x": 110, "y": 170, "width": 280, "height": 30},
                                },
                            ],
                        },
                        {
                            "tag": "img",
                            "attrs": {"src": "/assets/logo.png", "alt": "logo"},
                            "computed": {"display": "inline", "opacity": "0"},
                            "rect": {"x": 100, "y": 380, "width": 100, "height": 100},
                        },
                        {
                            "tag": "div",
                            "attrs": {"class": "actions"},
                            "computed": {"display": "flex"},
                            "rect": {"x": 100, "y": 600, "width": 800, "height": 40},
                            "children": [
                                {
                                    "tag": "button",
                                    "text": "Download PDF",
                                    "computed": {"display": "inline-block"},
                                    "rect": {"x": 100, "y": 600, "width": 150, "height": 40},
                                },
                            ],
                        },
                    ],
                },
            ],
        },
    }


@pytest.fixture
def sample_snapshot() -> dict[str, Any]:
    return build_sample_snapshot()


@pytest.fixture
def sample_document(sample_snapshot: dict[str, Any]) -> SnapshotDocument:
    """示例文档"""
    return document_from_dict(sample_snapshot)


# ============================================================================
# 流水线 Fixtures
# ============================================================================

@pytest.fixture
def asset_loader() -> FakeAssetLoader:
    return FakeAssetLoader()


@pytest.fixture
def loader_factory() -> type[FakeAssetLoader]:
    """按参数构建资源加载替身（失败/永不完成的来源）"""
    return FakeAssetLoader


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def failing_probe() -> FailingProbe:
    return FailingProbe()


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def fake_rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
def pipeline(runtime_config: RuntimeConfig, spec: StyleSpec, asset_loader: FakeAssetLoader) -> ExportPipeline:
    """真实光栅化与文档写出，替换资源加载器"""
    return ExportPipeline(runtime_config, spec=spec, loader=asset_loader)


@pytest.fixture
def manager(pipeline: ExportPipeline) -> ExportManager:
    return ExportManager(pipeline)


# ============================================================================
# 文件 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
