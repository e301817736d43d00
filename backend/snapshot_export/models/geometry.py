"""
几何模型 - 视口坐标系中的矩形
"""

from __future__ import annotations

from pydantic import BaseModel


class Rect(BaseModel):
    """包围盒（视口坐标，左上角原点）"""

    model_config = {"frozen": True}

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def translate(self, dx: float, dy: float) -> Rect:
        return self.model_copy(update={"x": self.x + dx, "y": self.y + dy})

    def resize(self, width: float | None = None, height: float | None = None) -> Rect:
        update = {}
        if width is not None:
            update["width"] = width
        if height is not None:
            update["height"] = height
        return self.model_copy(update=update)

    def union(self, other: Rect) -> Rect:
        """最小外接矩形"""
        left = min(self.left, other.left)
        top = min(self.top, other.top)
        right = max(self.right, other.right)
        bottom = max(self.bottom, other.bottom)
        return Rect(x=left, y=top, width=right - left, height=bottom - top)

    def intersects(self, other: Rect) -> bool:
        """判断是否相交"""
        return not (
            self.right <= other.left or
            self.left >= other.right or
            self.bottom <= other.top or
            self.top >= other.bottom
        )

    def extends_beyond(self, container: Rect) -> bool:
        """判断是否超出容器边界（任一方向）"""
        return (
            self.left < container.left or
            self.right > container.right or
            self.top < container.top or
            self.bottom > container.bottom
        )
