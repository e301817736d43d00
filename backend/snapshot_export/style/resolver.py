"""
样式解析 - 单节点生效样式 → 不可变 StyleRecord（纯函数）

规则：
1. 空值与占位值（initial/inherit/unset）跳过
2. color 总是显式写出：透明/当前色 → 最近祖先已解析颜色 → rgb(0, 0, 0)；
   非标准编码转换为十六进制，转换失败为 #000000
3. 其余 *color* 属性（不含 border）：透明值省略
4. 其余属性：原值写出并提升优先级
5. 简写二次处理：border / background 的颜色分量使用非标准编码时改写
"""

from __future__ import annotations

from ..config import StyleSpec
from ..interfaces import IColorProbe, ILayoutEngine
from ..models import Element, StyleDeclaration, StyleRecord
from .colors import convert_color_to_hex

DEFAULT_TEXT_COLOR = "rgb(0, 0, 0)"

# 视为“无边框”的计算值
_EMPTY_BORDERS = ("none", "0px none rgb(0, 0, 0)")
_EMPTY_BACKGROUNDS = ("none", "rgba(0, 0, 0, 0)")


def canonicalize_colors(value: str, spec: StyleSpec, probe: IColorProbe) -> str:
    """把值中每个非标准颜色片段替换为十六进制"""
    return spec.nonstandard_pattern.sub(lambda m: convert_color_to_hex(m.group(0), probe), value)


def resolve_text_color(
    value: str,
    spec: StyleSpec,
    probe: IColorProbe,
    ancestor_color: str | None = None,
) -> str:
    """解析文本颜色（保证非透明）"""
    if value and not spec.is_placeholder(value) and not spec.is_transparent(value):
        if spec.uses_nonstandard_color(value):
            return convert_color_to_hex(value, probe)
        return value
    if ancestor_color and not spec.is_transparent(ancestor_color):
        return ancestor_color
    return DEFAULT_TEXT_COLOR


def resolve_style(
    element: Element,
    engine: ILayoutEngine,
    spec: StyleSpec,
    probe: IColorProbe,
    ancestor_color: str | None = None,
) -> StyleRecord:
    """
    计算节点的样式记录

    Args:
        element: 克隆节点（携带源节点的采集样式）
        engine: 布局引擎
        spec: 样式属性规范
        probe: 颜色探针
        ancestor_color: 最近祖先已解析的文本颜色

    Returns:
        按属性枚举顺序排列的样式记录
    """
    computed = engine.computed_style(element)
    values: dict[str, str] = {}

    for prop in spec.properties:
        value = computed.get(prop, "").strip()

        if prop == "color":
            values[prop] = resolve_text_color(value, spec, probe, ancestor_color)
            continue

        if not value or spec.is_placeholder(value):
            continue

        if "color" in prop:
            if "border" not in prop and spec.is_transparent(value):
                continue
            if spec.uses_nonstandard_color(value):
                value = canonicalize_colors(value, spec, probe)

        values[prop] = value

    _rewrite_shorthands(values, computed, spec, probe)

    return StyleRecord(
        declarations=tuple(StyleDeclaration(name=name, value=value) for name, value in values.items())
    )


def _rewrite_shorthands(
    values: dict[str, str],
    computed: dict[str, str],
    spec: StyleSpec,
    probe: IColorProbe,
) -> None:
    border = computed.get("border", "").strip()
    border_color = computed.get("border-color", "")
    if border and border not in _EMPTY_BORDERS and spec.uses_nonstandard_color(border_color):
        width = computed.get("border-width", "0px").split()[0]
        style = computed.get("border-style", "none").split()[0]
        hex_color = convert_color_to_hex(spec.find_nonstandard_colors(border_color)[0], probe)
        values["border"] = f"{width} {style} {hex_color}"

    background = computed.get("background", "").strip()
    background_color = computed.get("background-color", "")
    if background and background not in _EMPTY_BACKGROUNDS and spec.uses_nonstandard_color(background_color):
        values["background-color"] = convert_color_to_hex(
            spec.find_nonstandard_colors(background_color)[0], probe
        )
        values["background"] = canonicalize_colors(background, spec, probe)
