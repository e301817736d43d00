"""
节点树模型 - 可视树（源节点）与克隆节点

每个节点携带：
- 采集时的计算样式（属性名 → 解析后字符串值）
- 采集时的包围盒（视口坐标）与可滚动尺寸
- 内联样式声明（值 + 优先级），语义对齐 setProperty/getPropertyValue
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator

from .geometry import Rect

IMPORTANT = "important"


def _split_declarations(css_text: str) -> list[str]:
    """按分号切分声明（忽略括号与引号内的分号，如 data URI）"""
    parts: list[str] = []
    depth = 0
    quote = ""
    buf: list[str] = []
    for ch in css_text:
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        elif ch == ";" and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return [p.strip() for p in parts if p.strip()]


class InlineStyle:
    """内联样式声明集合（保持写入顺序）"""

    def __init__(self, declarations: dict[str, tuple[str, str]] | None = None):
        self._decls: dict[str, tuple[str, str]] = dict(declarations or {})

    @classmethod
    def parse(cls, css_text: str) -> InlineStyle:
        """解析 style 属性文本"""
        style = cls()
        for decl in _split_declarations(css_text or ""):
            if ":" not in decl:
                continue
            name, value = decl.split(":", 1)
            value = value.strip()
            priority = ""
            if value.lower().endswith("!important"):
                value = value[: -len("!important")].strip()
                priority = IMPORTANT
            style.set_property(name.strip().lower(), value, priority)
        return style

    def set_property(self, name: str, value: str | None, priority: str = "") -> None:
        """设置声明；空值等价于移除"""
        if value is None or value == "":
            self.remove_property(name)
            return
        self._decls.pop(name, None)
        self._decls[name] = (str(value), priority)

    def get_property_value(self, name: str) -> str:
        decl = self._decls.get(name)
        return decl[0] if decl else ""

    def get_property_priority(self, name: str) -> str:
        decl = self._decls.get(name)
        return decl[1] if decl else ""

    def remove_property(self, name: str) -> str:
        decl = self._decls.pop(name, None)
        return decl[0] if decl else ""

    def items(self) -> Iterator[tuple[str, str]]:
        for name, (value, _) in self._decls.items():
            yield name, value

    def copy(self) -> InlineStyle:
        return InlineStyle(self._decls)

    def to_css(self) -> str:
        chunks = []
        for name, (value, priority) in self._decls.items():
            suffix = " !important" if priority == IMPORTANT else ""
            chunks.append(f"{name}: {value}{suffix}")
        return "; ".join(chunks)

    def __contains__(self, name: object) -> bool:
        return name in self._decls

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._decls))

    def __len__(self) -> int:
        return len(self._decls)

    def __repr__(self) -> str:
        return f"InlineStyle({self.to_css()!r})"


@dataclass(eq=False)
class Element:
    """树节点（源节点或克隆节点）"""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    computed: dict[str, str] = field(default_factory=dict)
    rect: Rect = field(default_factory=Rect)
    scroll_width: float = 0.0
    scroll_height: float = 0.0
    style: InlineStyle = field(default_factory=InlineStyle)
    children: list[Element] = field(default_factory=list)
    parent: Element | None = field(default=None, repr=False)
    # 克隆节点指向被复制的节点
    source: Element | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.tag = self.tag.lower()
        for child in self.children:
            child.parent = self

    # === 属性 ===

    @property
    def id(self) -> str | None:
        return self.attrs.get("id")

    @id.setter
    def id(self, value: str) -> None:
        self.attrs["id"] = value

    @property
    def class_list(self) -> list[str]:
        return self.attrs.get("class", "").split()

    @property
    def text_content(self) -> str:
        return self.text + "".join(child.text_content for child in self.children)

    # === 树操作 ===

    def append_child(self, child: Element) -> Element:
        if child.parent is not None:
            child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def remove(self) -> None:
        """从父节点摘除（未挂载时无操作）"""
        if self.parent is not None:
            self.parent.children = [c for c in self.parent.children if c is not self]
            self.parent = None

    def walk(self) -> Iterator[Element]:
        """先序遍历（含自身）"""
        yield self
        for child in list(self.children):
            yield from child.walk()

    def iter_descendants(self) -> Iterator[Element]:
        """先序遍历（不含自身）"""
        for child in list(self.children):
            yield from child.walk()

    def query_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter_descendants() if predicate(el)]

    def find_all(self, *tags: str) -> list[Element]:
        wanted = {t.lower() for t in tags}
        return self.query_all(lambda el: el.tag in wanted)

    def ancestors(self) -> Iterator[Element]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def contains(self, other: Element) -> bool:
        return other is self or any(a is self for a in other.ancestors())

    def clone(self) -> Element:
        """深拷贝子树；新节点脱离父节点，source 指向原节点"""
        copy = Element(
            tag=self.tag,
            attrs=dict(self.attrs),
            text=self.text,
            computed=dict(self.computed),
            rect=self.rect,
            scroll_width=self.scroll_width,
            scroll_height=self.scroll_height,
            style=self.style.copy(),
            source=self,
        )
        for child in self.children:
            copy.append_child(child.clone())
        return copy


@dataclass(eq=False)
class SnapshotDocument:
    """文档（body 即后备存储）"""

    body: Element
    viewport_width: float = 0.0
    viewport_height: float = 0.0
    base_url: str | None = None

    def get_element_by_id(self, element_id: str) -> Element | None:
        for el in self.body.walk():
            if el.id == element_id:
                return el
        return None

    def is_attached(self, element: Element) -> bool:
        return self.body.contains(element)
