"""
分页器 - 位图按内容宽度等比缩放后切成页高片段

计算：
- final_width = 页面内容宽度（页宽 - 2×左右边距）
- final_height = final_width / (位图宽 / 位图高)
- total_pages = ceil(final_height / 内容高度)
- pixels_per_page = 内容高度 / final_height × 位图高

切片边界取 floor(i × pixels_per_page)，最后一页到位图底部：
各页行数之和严格等于位图高度，不重复、不遗漏。

测试要点：
- test_row_conservation: 行守恒
- test_a4_scenario: 2000×6000 → 2 页
- test_single_page: 短位图单页
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from ..interfaces import IDocument, IDocumentWriter, ZeroDimensionError
from ..models import Bitmap, PageGeometry, PageLayout, PageSlice

logger = logging.getLogger(__name__)

# 浮点误差容限（避免整除场景多出一页）
_PAGE_EPSILON = 1e-9


def compute_page_layout(bitmap_width: int, bitmap_height: int, geometry: PageGeometry) -> PageLayout:
    """计算分页布局"""
    if bitmap_width <= 0 or bitmap_height <= 0:
        raise ZeroDimensionError(f"位图尺寸为零: {bitmap_width}x{bitmap_height}")
    if geometry.content_width <= 0 or geometry.content_height <= 0:
        raise ValueError("页面边距超过页面尺寸")

    final_width = geometry.content_width
    final_height = final_width / (bitmap_width / bitmap_height)
    content_height = geometry.content_height
    total_pages = max(1, math.ceil(final_height / content_height - _PAGE_EPSILON))
    pixels_per_page = content_height / final_height * bitmap_height

    return PageLayout(
        bitmap_width=bitmap_width,
        bitmap_height=bitmap_height,
        final_width=final_width,
        final_height=final_height,
        content_height=content_height,
        total_pages=total_pages,
        pixels_per_page=pixels_per_page,
    )


def plan_slices(layout: PageLayout, geometry: PageGeometry) -> list[PageSlice]:
    """按页划分位图行区间并计算放置矩形"""
    slices: list[PageSlice] = []
    height = layout.bitmap_height
    for index in range(layout.total_pages):
        start = min(height, math.floor(index * layout.pixels_per_page))
        if index == layout.total_pages - 1:
            end = height
        else:
            end = min(height, math.floor((index + 1) * layout.pixels_per_page))
        rows = end - start
        if rows <= 0:
            continue
        slices.append(
            PageSlice(
                page_index=len(slices),
                source_offset=start,
                row_count=rows,
                x=geometry.margin_left_right,
                y=geometry.margin_top_bottom,
                width=layout.final_width,
                height=rows / height * layout.final_height,
            )
        )
    return slices


@dataclass
class PaginationResult:
    """分页结果"""
    document: IDocument
    layout: PageLayout
    slices: list[PageSlice] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.slices)


class Paginator:
    """分页器"""

    def __init__(self, geometry: PageGeometry, image_format: str = "JPEG", image_quality: int = 98):
        self.geometry = geometry
        self.image_format = image_format
        self.image_quality = image_quality

    def paginate(self, bitmap: Bitmap, writer: IDocumentWriter) -> PaginationResult:
        """切片并逐页放置，第一页之后的每页先追加新页"""
        layout = compute_page_layout(bitmap.width, bitmap.height, self.geometry)
        slices = plan_slices(layout, self.geometry)
        logger.info(
            f"分页: 位图 {bitmap.width}x{bitmap.height}, 共 {len(slices)} 页, "
            f"每页 {layout.pixels_per_page:.1f} 行"
        )

        document = writer.create_document(
            self.geometry.orientation, self.geometry.unit, self.geometry.format
        )
        for page_slice in slices:
            if page_slice.page_index > 0:
                document.add_page()
            data = bitmap.crop_rows(page_slice.source_offset, page_slice.row_count).encode(
                self.image_format, self.image_quality
            )
            document.add_image(
                data,
                self.image_format,
                page_slice.x,
                page_slice.y,
                page_slice.width,
                page_slice.height,
            )

        return PaginationResult(document=document, layout=layout, slices=slices)
