"""
快照加载器 - 采集的可视树快照（JSON/YAML）→ SnapshotDocument

快照结构：
    {
      "viewport": {"width": 1280, "height": 800},
      "base_url": "http://localhost:3000",
      "root": {
        "tag": "body", "attrs": {...}, "text": "", "style": "color: red",
        "computed": {"color": "rgb(0, 0, 0)", ...},
        "rect": {"x": 0, "y": 0, "width": 1280, "height": 2400},
        "scroll": {"width": 1280, "height": 2400},
        "children": [...]
      }
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..interfaces import SnapshotFormatError
from ..models import Element, InlineStyle, Rect, SnapshotDocument


class ScrollExtent(BaseModel):
    """可滚动尺寸"""
    width: float = 0.0
    height: float = 0.0


class NodeSnapshot(BaseModel):
    """单个节点快照"""
    tag: str
    attrs: dict[str, str] = Field(default_factory=dict)
    text: str = ""
    style: str = ""
    computed: dict[str, str] = Field(default_factory=dict)
    rect: Rect = Field(default_factory=Rect)
    scroll: ScrollExtent = Field(default_factory=ScrollExtent)
    children: list[NodeSnapshot] = Field(default_factory=list)

    def to_element(self) -> Element:
        inline_css = self.style or self.attrs.get("style", "")
        attrs = {k: v for k, v in self.attrs.items() if k != "style"}
        element = Element(
            tag=self.tag,
            attrs=attrs,
            text=self.text,
            computed=dict(self.computed),
            rect=self.rect,
            scroll_width=self.scroll.width,
            scroll_height=self.scroll.height,
            style=InlineStyle.parse(inline_css),
        )
        for child in self.children:
            element.append_child(child.to_element())
        return element


NodeSnapshot.model_rebuild()


class Viewport(BaseModel):
    width: float = 0.0
    height: float = 0.0


class DocumentSnapshot(BaseModel):
    """整页快照"""
    viewport: Viewport = Field(default_factory=Viewport)
    base_url: str | None = None
    root: NodeSnapshot

    def to_document(self) -> SnapshotDocument:
        body = self.root.to_element()
        return SnapshotDocument(
            body=body,
            viewport_width=self.viewport.width,
            viewport_height=self.viewport.height,
            base_url=self.base_url,
        )


def document_from_dict(data: dict[str, Any]) -> SnapshotDocument:
    """由字典构建文档"""
    return DocumentSnapshot(**data).to_document()


def load_snapshot(path: str | Path) -> SnapshotDocument:
    """加载快照文件（.json / .yaml / .yml）"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"快照文件不存在: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SnapshotFormatError(f"快照文件无法解析: {path}: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotFormatError(f"快照文件结构不合法: {path}")
    try:
        return document_from_dict(data)
    except ValidationError as e:
        raise SnapshotFormatError(f"快照文件结构不合法: {path}: {e.error_count()} 处错误") from e


def save_snapshot(data: dict[str, Any], path: str | Path) -> Path:
    """保存快照为JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    return path
