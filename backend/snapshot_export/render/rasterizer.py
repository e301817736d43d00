"""
光栅化器 - Pillow 盒模型绘制实现

职责：
1. 复制渲染用副本并调用一次预采集钩子（修改只作用于副本）
2. 以固定像素密度绘制：背景色、背景图、边框、图片、文本
3. 遵循 display:none / visibility:hidden / opacity / overflow 裁剪 / z-index 绘制顺序
4. 只绘制自包含的 data: 图片（allow_taint 时额外允许本地文件）

任何绘制异常统一包装为 RenderFailureError，不重试。

依赖：
- Pillow: Image / ImageDraw / ImageFont / ImageColor

测试要点：
- test_render_dimensions: 位图尺寸 = 尺寸 × 缩放
- test_hook_sees_duplicate: 钩子修改不影响输入树
- test_clipped_child_not_painted: 裁剪容器外的内容不绘制
"""

from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..config import StyleSpec, load_style_spec
from ..dom.layout import SnapshotLayoutEngine, parse_px
from ..interfaces import CloneHook, ColorResolutionError, IColorProbe, IRasterizer, RenderFailureError
from ..models import (
    Bitmap,
    Element,
    Rect,
    RenderOptions,
    SnapshotDocument,
    decode_data_uri,
    extract_background_url,
)
from ..style.colors import CssColorProbe

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?%?")

# 不产生可见盒的标签
_SKIP_TAGS = {"script", "style", "head", "meta", "link", "title", "template", "noscript"}


@dataclass(frozen=True)
class _Box:
    """画布像素坐标系中的矩形（左上、右下）"""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def is_empty(self) -> bool:
        return self.right <= self.left or self.bottom <= self.top

    def intersect(self, other: _Box) -> _Box:
        return _Box(
            max(self.left, other.left),
            max(self.top, other.top),
            min(self.right, other.right),
            min(self.bottom, other.bottom),
        )

    def as_int(self) -> tuple[int, int, int, int]:
        return (
            int(math.floor(self.left)),
            int(math.floor(self.top)),
            int(math.ceil(self.right)),
            int(math.ceil(self.bottom)),
        )


class PillowRasterizer(IRasterizer):
    """Pillow 光栅化器"""

    def __init__(
        self,
        spec: StyleSpec | None = None,
        probe: IColorProbe | None = None,
        default_font_size: float = 16.0,
    ):
        self.spec = spec or load_style_spec()
        self.engine = SnapshotLayoutEngine(self.spec)
        self.probe = probe or CssColorProbe()
        self.default_font_size = default_font_size

    def render(
        self,
        root: Element,
        options: RenderOptions,
        on_clone: CloneHook | None = None,
    ) -> Bitmap:
        try:
            document, duplicate = self._duplicate(root)
            if on_clone is not None:
                on_clone(document, duplicate)
            return self._paint_document(duplicate, options)
        except RenderFailureError:
            raise
        except Exception as e:
            logger.exception("光栅化失败")
            raise RenderFailureError(f"光栅化失败: {e}") from e

    @staticmethod
    def _duplicate(root: Element) -> tuple[SnapshotDocument, Element]:
        """复制渲染用副本，挂载到独立的文档中"""
        duplicate = root.clone()
        body = Element(tag="body", rect=root.rect)
        body.append_child(duplicate)
        return SnapshotDocument(body=body), duplicate

    def _paint_document(self, root: Element, options: RenderOptions) -> Bitmap:
        if options.width <= 0 or options.height <= 0:
            raise RenderFailureError(f"渲染尺寸为零: {options.width}x{options.height}")

        scale = options.scale
        size = (max(1, math.ceil(options.width * scale)), max(1, math.ceil(options.height * scale)))
        background = self._parse_color(options.background_color) or (255, 255, 255, 255)
        canvas = Image.new("RGB", size, background[:3])

        origin = self.engine.bounding_rect(root)
        self._origin = (origin.x, origin.y)
        self._scale = scale
        self._options = options
        self._canvas = canvas
        self._draw = ImageDraw.Draw(canvas, "RGBA")

        viewport = _Box(0, 0, size[0], size[1])
        self._paint(root, viewport, 1.0)
        logger.debug(f"光栅化完成: {size[0]}x{size[1]} (scale={scale})")
        return Bitmap(canvas)

    # === 绘制 ===

    def _paint(self, el: Element, clip: _Box, alpha: float) -> None:
        if el.tag in _SKIP_TAGS:
            return
        style = self.engine.computed_style(el)
        if style.get("display") == "none":
            return

        opacity = self._parse_opacity(style.get("opacity"))
        alpha *= opacity
        if alpha <= 0:
            return

        box = self._to_canvas(self.engine.bounding_rect(el))
        if style.get("visibility", "visible") != "hidden":
            self._paint_background(el, style, box, clip, alpha)
            self._paint_border(style, box, clip, alpha)
            if el.tag == "img":
                self._paint_image_source(el.attrs.get("src", ""), box, clip, alpha)
            if el.text.strip():
                self._paint_text(el.text, style, box, clip, alpha)

        child_clip = clip.intersect(box) if self._clips(style) else clip
        if child_clip.is_empty:
            return
        for child in self._paint_order(el.children):
            self._paint(child, child_clip, alpha)

    def _paint_order(self, children: list[Element]) -> list[Element]:
        """按 z-index 稳定排序（auto 视为 0）"""
        def z_index(child: Element) -> int:
            value = self.engine.computed_style(child).get("z-index", "auto")
            try:
                return int(value)
            except ValueError:
                return 0
        return sorted(children, key=z_index)

    def _paint_background(self, el: Element, style: dict[str, str], box: _Box, clip: _Box, alpha: float) -> None:
        color = self._parse_color(style.get("background-color", ""))
        if color is not None:
            self._fill(box, clip, color, alpha)
        url = extract_background_url(style.get("background-image", ""))
        if url:
            self._paint_image_source(url, box, clip, alpha)

    def _paint_border(self, style: dict[str, str], box: _Box, clip: _Box, alpha: float) -> None:
        for side in ("top", "right", "bottom", "left"):
            border_style = style.get(f"border-{side}-style") or self._first(style.get("border-style", "none"))
            if border_style in ("none", "hidden", ""):
                continue
            width = parse_px(style.get(f"border-{side}-width") or self._first(style.get("border-width", "0px")))
            color = self._parse_color(
                style.get(f"border-{side}-color") or self._first_color(style.get("border-color", ""))
                or style.get("color", "")
            )
            if not width or width <= 0 or color is None:
                continue
            w = width * self._scale
            edge = {
                "top": _Box(box.left, box.top, box.right, box.top + w),
                "right": _Box(box.right - w, box.top, box.right, box.bottom),
                "bottom": _Box(box.left, box.bottom - w, box.right, box.bottom),
                "left": _Box(box.left, box.top, box.left + w, box.bottom),
            }[side]
            self._fill(edge, clip, color, alpha)

    def _paint_image_source(self, src: str, box: _Box, clip: _Box, alpha: float) -> None:
        image = self._open_image(src)
        if image is None or box.is_empty:
            return
        left, top, right, bottom = box.as_int()
        if right <= left or bottom <= top:
            return
        tile = image.convert("RGBA").resize((right - left, bottom - top))
        self._composite(tile, left, top, clip, alpha)

    def _paint_text(self, text: str, style: dict[str, str], box: _Box, clip: _Box, alpha: float) -> None:
        color = self._parse_color(style.get("color", "")) or (0, 0, 0, 255)
        font_size = (parse_px(style.get("font-size")) or self.default_font_size) * self._scale
        font = self._font(font_size)
        line_height = (parse_px(style.get("line-height")) or font_size / self._scale * 1.2) * self._scale

        pad_left = (parse_px(style.get("padding-left")) or 0) * self._scale
        pad_right = (parse_px(style.get("padding-right")) or 0) * self._scale
        pad_top = (parse_px(style.get("padding-top")) or 0) * self._scale
        content_left = box.left + pad_left
        content_width = max(1.0, box.right - pad_right - content_left)

        align = style.get("text-align", "left")
        y = box.top + pad_top
        for line in self._wrap(text.strip(), font, content_width, style.get("white-space", "normal")):
            line_width = font.getlength(line)
            if align in ("center", "-webkit-center"):
                x = content_left + (content_width - line_width) / 2
            elif align in ("right", "end"):
                x = content_left + content_width - line_width
            else:
                x = content_left
            bbox = font.getbbox(line)
            tile_w = max(1, int(math.ceil(bbox[2])))
            tile_h = max(1, int(math.ceil(max(bbox[3], line_height))))
            tile = Image.new("RGBA", (tile_w, tile_h), (0, 0, 0, 0))
            ImageDraw.Draw(tile).text((0, 0), line, font=font, fill=color)
            self._composite(tile, int(round(x)), int(round(y)), clip, alpha)
            y += line_height

    # === 合成辅助 ===

    def _fill(self, box: _Box, clip: _Box, color: RGBA, alpha: float) -> None:
        target = box.intersect(clip)
        if target.is_empty:
            return
        left, top, right, bottom = target.as_int()
        fill = color[:3] + (int(round(color[3] * alpha)),)
        self._draw.rectangle((left, top, right - 1, bottom - 1), fill=fill)

    def _composite(self, tile: Image.Image, left: int, top: int, clip: _Box, alpha: float) -> None:
        target = _Box(left, top, left + tile.width, top + tile.height).intersect(clip)
        if target.is_empty:
            return
        x0, y0, x1, y1 = target.as_int()
        cropped = tile.crop((x0 - left, y0 - top, x1 - left, y1 - top))
        mask = cropped.getchannel("A")
        if alpha < 1.0:
            mask = mask.point(lambda v: int(v * alpha))
        self._canvas.paste(cropped.convert("RGB"), (x0, y0), mask)

    def _to_canvas(self, rect: Rect) -> _Box:
        ox, oy = self._origin
        s = self._scale
        return _Box(
            (rect.left - ox) * s,
            (rect.top - oy) * s,
            (rect.right - ox) * s,
            (rect.bottom - oy) * s,
        )

    def _clips(self, style: dict[str, str]) -> bool:
        return any(
            self.spec.is_clipping(style.get(name, ""))
            for name in ("overflow", "overflow-x", "overflow-y")
        )

    def _open_image(self, src: str) -> Image.Image | None:
        src = src.strip()
        if not src:
            return None
        try:
            if src.startswith("data:"):
                data, _ = decode_data_uri(src)
            elif self._options.allow_taint and not src.startswith(("http:", "https:")):
                path = Path(src[len("file://"):] if src.startswith("file://") else src)
                data = path.read_bytes()
            else:
                logger.debug(f"跳过非自包含图片来源: {src[:80]}")
                return None
            image = Image.open(io.BytesIO(data))
            image.load()
            return image
        except (ValueError, OSError) as e:
            logger.warning(f"图片无法绘制，已跳过: {src[:80]}: {e}")
            return None

    def _font(self, size: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        return ImageFont.load_default(size=max(1.0, size))

    @staticmethod
    def _wrap(text: str, font, width: float, white_space: str) -> list[str]:
        """按词贪心折行（nowrap/pre 不折行）"""
        if white_space in ("nowrap", "pre"):
            return text.splitlines() or [text]
        lines: list[str] = []
        for paragraph in text.splitlines() or [text]:
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}" if current else word
                if current and font.getlength(candidate) > width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    # === 取值解析 ===

    def _parse_color(self, value: str) -> RGBA | None:
        value = (value or "").strip()
        if not value or self.spec.is_transparent(value) or value == "none":
            return None
        lowered = value.lower()
        try:
            if lowered.startswith("rgb"):
                numbers = _NUMBER_RE.findall(lowered)
                if len(numbers) < 3:
                    return None
                r, g, b = (min(255, max(0, round(float(n.rstrip("%"))))) for n in numbers[:3])
                a = 255
                if len(numbers) >= 4:
                    raw = numbers[3]
                    fraction = float(raw[:-1]) / 100 if raw.endswith("%") else float(raw)
                    a = int(round(min(1.0, max(0.0, fraction)) * 255))
                return (r, g, b, a)
            if self.spec.uses_nonstandard_color(value):
                value = self.probe.resolve(value)
            rgb = ImageColor.getrgb(value)
        except (ValueError, ColorResolutionError):
            logger.debug(f"颜色无法解析，跳过绘制: {value}")
            return None
        return (rgb[0], rgb[1], rgb[2], rgb[3] if len(rgb) > 3 else 255)

    @staticmethod
    def _parse_opacity(value: str | None) -> float:
        if not value:
            return 1.0
        try:
            return min(1.0, max(0.0, float(value)))
        except ValueError:
            return 1.0

    @staticmethod
    def _first(value: str) -> str:
        parts = value.split()
        return parts[0] if parts else ""

    def _first_color(self, value: str) -> str:
        """多值边框颜色取第一个（rgb() 内含空格）"""
        value = value.strip()
        if value.lower().startswith(("rgb", "hsl")) or self.spec.uses_nonstandard_color(value):
            end = value.find(")")
            return value[: end + 1] if end >= 0 else value
        return self._first(value)
