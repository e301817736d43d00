"""
渲染层 - 光栅化器与文档写出器的默认实现
"""

from .pdf_writer import ReportLabDocument, ReportLabDocumentWriter
from .rasterizer import PillowRasterizer

__all__ = [
    "PillowRasterizer",
    "ReportLabDocument",
    "ReportLabDocumentWriter",
]
