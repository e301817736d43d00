"""
资源同步 - 等待克隆中全部图片资源到达终态

职责：
1. 收集 <img> 与背景图节点，来源绝对化（src → data-src；"/" 开头补全站点源）
2. 强制可见（display/visibility/opacity）
3. 并发等待每个资源：加载成功 / 加载失败 / 超时，三者先到者为准
4. 加载成功的资源内联为 data: URI，保证光栅化输入自包含

依赖：
- requests: 远程资源获取（在工作线程中执行，不阻塞事件循环）
- Pillow: 校验资源可解码

测试要点：
- test_collect_absolutizes_sources: 来源绝对化
- test_timeout_bound: 永不完成的资源在超时窗口内放弃
- test_failed_asset_does_not_block: 失败资源不阻塞
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urljoin, urlsplit

import requests
from PIL import Image, UnidentifiedImageError

from ..interfaces import AssetLoadError, IAssetLoader, ILayoutEngine
from ..models import (
    AssetHandle,
    AssetKind,
    AssetState,
    Element,
    LoadedAsset,
    decode_data_uri,
    extract_background_url,
)
from ..models.dom import IMPORTANT

logger = logging.getLogger(__name__)


def absolutize_source(src: str, base_url: str | None = None, base_dir: Path | None = None) -> str:
    """
    来源绝对化

    - data:/http(s):/file: 原样
    - "/" 开头且有站点源: 补全为 origin + src
    - 其余相对路径: 有站点源时按站点源拼接，否则按本地目录拼接
    """
    src = src.strip()
    scheme = urlsplit(src).scheme.lower()
    if scheme in ("data", "http", "https", "file"):
        return src
    if src.startswith("//"):
        return f"https:{src}"
    if base_url:
        if src.startswith("/"):
            return base_url.rstrip("/") + src
        return urljoin(base_url.rstrip("/") + "/", src)
    if base_dir is not None and not Path(src).is_absolute():
        return str(base_dir / src)
    return src


class DefaultAssetLoader(IAssetLoader):
    """默认资源加载器：data URI / 本地文件 / http(s)"""

    def __init__(self, fetch_timeout: float = 10, session: requests.Session | None = None):
        self.fetch_timeout = fetch_timeout
        self.session = session or requests.Session()

    async def load(self, src: str) -> LoadedAsset:
        scheme = urlsplit(src).scheme.lower()
        if scheme == "data":
            data, mime = self._decode_data_uri(src)
        elif scheme in ("http", "https"):
            data, mime = await asyncio.to_thread(self._fetch, src)
        else:
            data, mime = await asyncio.to_thread(self._read_file, src)
        return LoadedAsset(data=data, mime=self._verify(data, mime, src))

    def _fetch(self, url: str) -> tuple[bytes, str]:
        try:
            response = self.session.get(url, timeout=self.fetch_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise AssetLoadError(f"资源获取失败: {url}: {e}") from e
        mime = response.headers.get("Content-Type", "").split(";")[0].strip()
        return response.content, mime

    @staticmethod
    def _read_file(src: str) -> tuple[bytes, str]:
        path = Path(src[len("file://"):] if src.startswith("file://") else src)
        try:
            return path.read_bytes(), ""
        except OSError as e:
            raise AssetLoadError(f"资源文件读取失败: {path}: {e}") from e

    @staticmethod
    def _decode_data_uri(src: str) -> tuple[bytes, str]:
        try:
            return decode_data_uri(src)
        except ValueError as e:
            raise AssetLoadError(f"data URI 解码失败: {e}") from e

    @staticmethod
    def _verify(data: bytes, mime: str, src: str) -> str:
        """确认可解码，返回规范 MIME"""
        try:
            with Image.open(io.BytesIO(data)) as img:
                img_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise AssetLoadError(f"资源无法解码: {src[:80]}: {e}") from e
        return Image.MIME.get(img_format or "", mime or "application/octet-stream")


@dataclass
class SyncReport:
    """同步结果"""
    handles: list[AssetHandle] = field(default_factory=list)
    elapsed_sec: float = 0.0

    def count(self, state: AssetState) -> int:
        return sum(1 for h in self.handles if h.state is state)

    @property
    def all_terminal(self) -> bool:
        return all(h.is_terminal for h in self.handles)


class AssetSynchronizer:
    """资源同步器"""

    def __init__(
        self,
        loader: IAssetLoader,
        engine: ILayoutEngine,
        timeout_ms: int = 3000,
        base_url: str | None = None,
        base_dir: Path | None = None,
    ):
        self.loader = loader
        self.engine = engine
        self.timeout_ms = timeout_ms
        self.base_url = base_url
        self.base_dir = base_dir

    def collect(self, root: Element) -> list[AssetHandle]:
        """收集资源句柄并强制可见"""
        handles: list[AssetHandle] = []

        for img in root.find_all("img"):
            src = img.attrs.get("src") or img.attrs.get("data-src") or ""
            img.style.set_property("display", "block", IMPORTANT)
            img.style.set_property("visibility", "visible", IMPORTANT)
            img.style.set_property("opacity", "1", IMPORTANT)
            if not src:
                continue
            absolute = absolutize_source(src, self.base_url, self.base_dir)
            img.attrs["src"] = absolute
            handles.append(AssetHandle(element=img, src=absolute, kind=AssetKind.IMAGE))

        for el in root.walk():
            url = extract_background_url(self.engine.computed_style(el).get("background-image", ""))
            if not url:
                continue
            if el.tag == "span":
                el.style.set_property("display", "inline-block", IMPORTANT)
            el.style.set_property("visibility", "visible", IMPORTANT)
            absolute = absolutize_source(url, self.base_url, self.base_dir)
            handles.append(AssetHandle(element=el, src=absolute, kind=AssetKind.BACKGROUND))

        return handles

    async def synchronize(self, handles: list[AssetHandle]) -> SyncReport:
        """并发等待全部资源到达终态（每个资源最长 timeout_ms）"""
        started = time.monotonic()
        await asyncio.gather(*(self._await_asset(handle) for handle in handles))
        report = SyncReport(handles=handles, elapsed_sec=time.monotonic() - started)
        logger.info(
            f"资源同步完成: 共 {len(handles)} 个, 成功 {report.count(AssetState.LOADED)}, "
            f"失败 {report.count(AssetState.FAILED)}, 超时 {report.count(AssetState.TIMED_OUT)}"
        )
        return report

    async def _await_asset(self, handle: AssetHandle) -> None:
        try:
            asset = await asyncio.wait_for(self.loader.load(handle.src), self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(f"资源等待超时，已放弃: {handle.src[:80]}")
            handle.settle(AssetState.TIMED_OUT, f"超过 {self.timeout_ms}ms")
            return
        except Exception as e:
            logger.warning(f"资源加载失败: {handle.src[:80]}: {e}")
            handle.settle(AssetState.FAILED, str(e))
            return

        self._inline(handle, asset)
        handle.settle(AssetState.LOADED)

    @staticmethod
    def _inline(handle: AssetHandle, asset: LoadedAsset) -> None:
        data_uri = asset.to_data_uri()
        if handle.kind is AssetKind.IMAGE:
            handle.element.attrs["src"] = data_uri
        else:
            handle.element.style.set_property("background-image", f'url("{data_uri}")', IMPORTANT)
