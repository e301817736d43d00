"""
样式记录模型 - 单个克隆节点解析后的内联视觉属性集合

不变式：
- 一次计算、不可变；写入内联样式后不再受级联影响
- color 总是存在且非透明
"""

from __future__ import annotations

from pydantic import BaseModel

from .dom import IMPORTANT, InlineStyle


class StyleDeclaration(BaseModel):
    """单条声明"""

    model_config = {"frozen": True}

    name: str
    value: str
    important: bool = True


class StyleRecord(BaseModel):
    """样式记录（按属性枚举顺序）"""

    model_config = {"frozen": True}

    declarations: tuple[StyleDeclaration, ...] = ()

    def get(self, name: str) -> str | None:
        for decl in self.declarations:
            if decl.name == name:
                return decl.value
        return None

    def as_dict(self) -> dict[str, str]:
        return {decl.name: decl.value for decl in self.declarations}

    @property
    def names(self) -> list[str]:
        return [decl.name for decl in self.declarations]

    def apply_to(self, style: InlineStyle) -> None:
        """写入内联样式（提升优先级）"""
        for decl in self.declarations:
            style.set_property(decl.name, decl.value, IMPORTANT if decl.important else "")

    def __contains__(self, name: object) -> bool:
        return any(decl.name == name for decl in self.declarations)

    def __len__(self) -> int:
        return len(self.declarations)
