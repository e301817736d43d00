"""
资源模型 - 图片资源句柄与加载结果

状态机：pending → {loaded, failed, timed_out}，终态不可再变更
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote_to_bytes

from .dom import Element


class AssetState(str, Enum):
    """资源状态"""
    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class AssetKind(str, Enum):
    """资源承载方式"""
    IMAGE = "img"
    BACKGROUND = "background"


@dataclass(frozen=True)
class LoadedAsset:
    """已解码验证的资源内容"""
    data: bytes
    mime: str

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime};base64,{encoded}"


@dataclass(eq=False)
class AssetHandle:
    """图片资源句柄"""
    element: Element
    src: str
    kind: AssetKind = AssetKind.IMAGE
    state: AssetState = AssetState.PENDING
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state is not AssetState.PENDING

    def settle(self, state: AssetState, error: str | None = None) -> None:
        """迁移到终态"""
        if self.is_terminal:
            raise ValueError(f"资源已处于终态: {self.state.value}")
        if state is AssetState.PENDING:
            raise ValueError("不能迁移回 pending")
        self.state = state
        self.error = error


def decode_data_uri(src: str) -> tuple[bytes, str]:
    """解码 data: URI，返回 (内容, MIME)；格式错误抛出 ValueError"""
    if not src.startswith("data:") or "," not in src:
        raise ValueError("不是有效的 data URI")
    header, payload = src[len("data:"):].split(",", 1)
    parts = header.split(";")
    mime = parts[0] or "text/plain"
    if "base64" in parts[1:]:
        return base64.b64decode(payload), mime
    return unquote_to_bytes(payload), mime


_URL_RE = re.compile(r"""url\(\s*(['"]?)(.*?)\1\s*\)""", re.IGNORECASE)


def extract_background_url(value: str) -> str | None:
    """从 background-image 取第一个 url(...)"""
    match = _URL_RE.search(value or "")
    return match.group(2) if match else None
