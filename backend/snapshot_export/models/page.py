"""
分页模型 - 页面几何、分页布局与页切片

对应关系：
- PageGeometry: 固定页面尺寸与边距（与像素密度无关）
- PageLayout: 位图按内容宽度等比缩放后的分页结果
- PageSlice: 单页承载的位图行区间及其页面放置矩形
"""

from __future__ import annotations

from pydantic import BaseModel

from ..config.runtime_config import PageConfig


class PageGeometry(BaseModel):
    """页面几何"""

    model_config = {"frozen": True}

    width: float = 8.27
    height: float = 11.69
    margin_top_bottom: float = 0.3
    margin_left_right: float = 0.7
    orientation: str = "portrait"
    unit: str = "in"
    format: str = "a4"

    @classmethod
    def from_config(cls, page: PageConfig) -> PageGeometry:
        return cls(**page.model_dump())

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin_left_right

    @property
    def content_height(self) -> float:
        return self.height - 2 * self.margin_top_bottom


class PageLayout(BaseModel):
    """分页布局"""

    model_config = {"frozen": True}

    bitmap_width: int
    bitmap_height: int
    final_width: float
    final_height: float
    content_height: float
    total_pages: int
    pixels_per_page: float


class PageSlice(BaseModel):
    """页切片"""

    model_config = {"frozen": True}

    page_index: int
    source_offset: int
    row_count: int

    # 页面放置矩形（页面单位）
    x: float
    y: float
    width: float
    height: float
