"""
PDF 文档写出 - reportlab 实现

职责：
1. 按固定页面格式创建文档（含第一页）
2. 追加页面、在当前页放置图片（左上角原点 → PDF 左下角原点）
3. 保存到文件（失败 → DocumentWriteError）

依赖：
- reportlab: PDF 画布与图片放置
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path

from reportlab.lib import pagesizes
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..interfaces import DocumentWriteError, IDocument, IDocumentWriter

logger = logging.getLogger(__name__)

# 单位 → 点（1/72 英寸）
UNIT_TO_POINTS = {
    "pt": 1.0,
    "in": 72.0,
    "mm": 72.0 / 25.4,
    "cm": 72.0 / 2.54,
    "px": 0.75,
}

PAGE_FORMATS = {
    "a3": pagesizes.A3,
    "a4": pagesizes.A4,
    "a5": pagesizes.A5,
    "letter": pagesizes.LETTER,
    "legal": pagesizes.LEGAL,
}


@dataclass
class ImagePlacement:
    """单张图片放置（文档单位，左上角原点）"""
    data: bytes
    image_format: str
    x: float
    y: float
    width: float
    height: float


@dataclass
class PageContent:
    placements: list[ImagePlacement] = field(default_factory=list)


class ReportLabDocument(IDocument):
    """内存中的分页文档，save 时一次性写出"""

    def __init__(self, page_size: tuple[float, float], unit: str):
        self.page_size = page_size
        self.unit = unit
        self.scale = UNIT_TO_POINTS[unit]
        self.pages: list[PageContent] = [PageContent()]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def add_page(self) -> None:
        self.pages.append(PageContent())

    def add_image(
        self,
        data: bytes,
        image_format: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        self.pages[-1].placements.append(ImagePlacement(data, image_format, x, y, width, height))

    def save(self, filename: str) -> None:
        path = Path(filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            pdf = canvas.Canvas(str(path), pagesize=self.page_size)
            page_height = self.page_size[1]
            for page in self.pages:
                for item in page.placements:
                    width = item.width * self.scale
                    height = item.height * self.scale
                    pdf.drawImage(
                        ImageReader(io.BytesIO(item.data)),
                        item.x * self.scale,
                        page_height - item.y * self.scale - height,
                        width=width,
                        height=height,
                        preserveAspectRatio=False,
                    )
                pdf.showPage()
            pdf.save()
        except Exception as e:
            logger.error(f"文档写出失败: {path}: {e}")
            raise DocumentWriteError(f"文档写出失败: {e}") from e
        logger.info(f"文档已保存: {path} ({self.page_count} 页)")


class ReportLabDocumentWriter(IDocumentWriter):
    """reportlab 文档写出器"""

    def create_document(self, orientation: str, unit: str, page_format: str) -> ReportLabDocument:
        fmt = page_format.lower()
        if fmt not in PAGE_FORMATS:
            raise DocumentWriteError(f"不支持的页面格式: {page_format}")
        if unit not in UNIT_TO_POINTS:
            raise DocumentWriteError(f"不支持的单位: {unit}")

        size = PAGE_FORMATS[fmt]
        if orientation.lower().startswith("l"):
            size = pagesizes.landscape(size)
        else:
            size = pagesizes.portrait(size)
        return ReportLabDocument(size, unit)
