"""
颜色解析 - 将任意CSS颜色规整为24位十六进制

职责：
1. 标准语法（#hex / rgb() / rgba() / hsl() / 颜色名）交给 Pillow ImageColor
2. 感知/广色域编码（lab / lch / oklab / oklch）按 CSS Color 4 换算到 sRGB
3. 解析失败回退为纯黑 #000000（不中断）

测试要点：
- test_rgb_to_hex: rgb/rgba → hex
- test_probe_oklch: oklch → rgb
- test_probe_failure_falls_back_black: 探针失败 → #000000
"""

from __future__ import annotations

import logging
import math
import re

from PIL import ImageColor

from ..interfaces import ColorResolutionError, IColorProbe

logger = logging.getLogger(__name__)

BLACK_HEX = "#000000"

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_FUNCTION_RE = re.compile(r"^\s*(oklch|oklab|lch|lab)\(\s*([^()]*)\)\s*$", re.IGNORECASE)

# D50 参考白
_D50_WHITE = (0.3457 / 0.3585, 1.0, (1.0 - 0.3457 - 0.3585) / 0.3585)

# Bradford: XYZ(D50) → XYZ(D65)
_D50_TO_D65 = (
    (0.955473421488075, -0.02309845494876471, 0.06325924320057072),
    (-0.0283697093338637, 1.0099953980813041, 0.021041441191917323),
    (0.012314014864481998, -0.020507649298898964, 1.330365926242124),
)

# XYZ(D65) → 线性 sRGB
_XYZ_TO_LINEAR_SRGB = (
    (3.2409699419045226, -1.537383177570094, -0.4986107602930034),
    (-0.9692436362808796, 1.8759675015077202, 0.04155505740717559),
    (0.05563007969699366, -0.20397695888897652, 1.0569715142428786),
)

# 百分比分量的参考范围（100% 对应的数值）
_PERCENT_REFERENCE = {
    "lab": (100.0, 125.0, 125.0),
    "lch": (100.0, 150.0, None),
    "oklab": (1.0, 0.4, 0.4),
    "oklch": (1.0, 0.4, None),
}


def _mat_mul(matrix, vector) -> tuple[float, float, float]:
    return tuple(sum(m * v for m, v in zip(row, vector)) for row in matrix)


def _gamma_encode(channel: float) -> float:
    sign = -1.0 if channel < 0 else 1.0
    magnitude = abs(channel)
    if magnitude <= 0.0031308:
        return sign * 12.92 * magnitude
    return sign * (1.055 * magnitude ** (1 / 2.4) - 0.055)


def _to_rgb_string(linear: tuple[float, float, float]) -> str:
    channels = []
    for value in linear:
        encoded = min(1.0, max(0.0, _gamma_encode(value)))
        channels.append(round(encoded * 255))
    return "rgb({}, {}, {})".format(*channels)


def _parse_hue(token: str) -> float:
    token = token.lower()
    if token == "none":
        return 0.0
    units = (("grad", 0.9), ("turn", 360.0), ("rad", 180.0 / math.pi), ("deg", 1.0))
    for suffix, factor in units:
        if token.endswith(suffix):
            return float(token[: -len(suffix)]) * factor
    return float(token)


def _parse_component(token: str, reference: float) -> float:
    token = token.lower()
    if token == "none":
        return 0.0
    if token.endswith("%"):
        return float(token[:-1]) / 100.0 * reference
    return float(token)


def _lab_to_linear_srgb(lightness: float, a: float, b: float) -> tuple[float, float, float]:
    kappa = 24389 / 27
    epsilon = 216 / 24389

    f1 = (lightness + 16) / 116
    f0 = a / 500 + f1
    f2 = f1 - b / 200

    x = f0 ** 3 if f0 ** 3 > epsilon else (116 * f0 - 16) / kappa
    y = f1 ** 3 if lightness > kappa * epsilon else lightness / kappa
    z = f2 ** 3 if f2 ** 3 > epsilon else (116 * f2 - 16) / kappa

    xyz_d50 = (x * _D50_WHITE[0], y * _D50_WHITE[1], z * _D50_WHITE[2])
    xyz_d65 = _mat_mul(_D50_TO_D65, xyz_d50)
    return _mat_mul(_XYZ_TO_LINEAR_SRGB, xyz_d65)


def _oklab_to_linear_srgb(lightness: float, a: float, b: float) -> tuple[float, float, float]:
    l_ = (lightness + 0.3963377774 * a + 0.2158037573 * b) ** 3
    m_ = (lightness - 0.1055613458 * a - 0.0638541728 * b) ** 3
    s_ = (lightness - 0.0894841775 * a - 1.2914855480 * b) ** 3
    return (
        4.0767416621 * l_ - 3.3077115913 * m_ + 0.2309699292 * s_,
        -1.2684380046 * l_ + 2.6097574011 * m_ - 0.3413193965 * s_,
        -0.0041960863 * l_ - 0.7034186147 * m_ + 1.7076147010 * s_,
    )


def rgb_to_hex(value: str) -> str:
    """rgb()/rgba() 字符串 → #rrggbb（忽略 alpha；分量不足时返回黑色）"""
    numbers = _NUMBER_RE.findall(value)
    if len(numbers) < 3:
        return BLACK_HEX
    channels = [min(255, max(0, round(float(n)))) for n in numbers[:3]]
    return "#" + "".join(f"{c:02x}" for c in channels)


class CssColorProbe(IColorProbe):
    """颜色探针默认实现"""

    def resolve(self, value: str) -> str:
        text = value.strip()
        match = _FUNCTION_RE.match(text)
        if match:
            return self._resolve_function(match.group(1).lower(), match.group(2), value)

        try:
            rgb = ImageColor.getrgb(text)
        except ValueError as e:
            raise ColorResolutionError(f"无法解析颜色: {value}") from e
        return "rgb({}, {}, {})".format(*rgb[:3])

    def _resolve_function(self, name: str, args: str, original: str) -> str:
        # 丢弃 alpha 分量
        channel_text = args.split("/", 1)[0].replace(",", " ")
        tokens = channel_text.split()
        if len(tokens) != 3:
            raise ColorResolutionError(f"颜色分量数量错误: {original}")

        ref_l, ref_2, ref_3 = _PERCENT_REFERENCE[name]
        try:
            lightness = _parse_component(tokens[0], ref_l)
            second = _parse_component(tokens[1], ref_2)
            if ref_3 is None:
                hue = math.radians(_parse_hue(tokens[2]))
                a, b = second * math.cos(hue), second * math.sin(hue)
            else:
                a, b = second, _parse_component(tokens[2], ref_3)
        except ValueError as e:
            raise ColorResolutionError(f"颜色分量无法解析: {original}") from e

        if name in ("lab", "lch"):
            return _to_rgb_string(_lab_to_linear_srgb(lightness, a, b))
        return _to_rgb_string(_oklab_to_linear_srgb(lightness, a, b))


def convert_color_to_hex(value: str, probe: IColorProbe) -> str:
    """
    任意颜色 → #rrggbb

    - 已是十六进制: 原样返回
    - rgb()/rgba(): 直接换算
    - 其余编码: 经探针解析，失败回退黑色
    """
    text = value.strip()
    if text.startswith("#"):
        return text
    if text.lower().startswith("rgb"):
        return rgb_to_hex(text)

    try:
        return rgb_to_hex(probe.resolve(text))
    except ColorResolutionError as e:
        logger.warning(f"颜色解析失败，回退黑色: {e}")
        return BLACK_HEX
