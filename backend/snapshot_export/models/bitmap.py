"""
位图模型 - 光栅化输出（创建后不可变）
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image
from pydantic import BaseModel


class RenderOptions(BaseModel):
    """光栅化参数"""

    scale: float = 2.0
    background_color: str = "#8c52ff"
    width: float
    height: float
    use_cors: bool = True
    allow_taint: bool = False


@dataclass(frozen=True)
class Bitmap:
    """像素缓冲（RGB）"""

    image: Image.Image

    def __post_init__(self) -> None:
        if self.image.mode != "RGB":
            object.__setattr__(self, "image", self.image.convert("RGB"))

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def crop_rows(self, offset: int, count: int) -> Bitmap:
        """截取连续像素行 [offset, offset + count)"""
        if count <= 0 or offset < 0 or offset + count > self.height:
            raise ValueError(f"行范围越界: offset={offset} count={count} height={self.height}")
        return Bitmap(self.image.crop((0, offset, self.width, offset + count)))

    def encode(self, image_format: str = "JPEG", quality: int = 98) -> bytes:
        """重新编码为独立图片"""
        buffer = io.BytesIO()
        fmt = image_format.upper()
        if fmt in ("JPEG", "JPG"):
            self.image.save(buffer, format="JPEG", quality=quality)
        else:
            self.image.save(buffer, format=fmt)
        return buffer.getvalue()
