"""
实时采集 - 通过无头浏览器把页面可视树序列化为快照

职责：
1. 打开页面并等待网络空闲
2. 校验根节点存在（按稳定查找键）
3. 序列化 body 子树：标签/属性/直接文本/内联样式/枚举属性的计算值/包围盒/滚动尺寸

依赖：
- playwright: Chromium 无头浏览器（可选安装 extra: capture）

测试要点：
- test_capture_requires_playwright: 未安装时报错
"""

from __future__ import annotations

import logging
from typing import Any, Iterable
from urllib.parse import urlsplit

from ..config import load_style_spec
from ..interfaces import ContentNotFoundError, SnapshotExportError

logger = logging.getLogger(__name__)

_SERIALIZE_JS = """
({ props }) => {
  const serialize = (el) => {
    const cs = window.getComputedStyle(el);
    const computed = {};
    for (const p of props) {
      const v = cs.getPropertyValue(p);
      if (v) computed[p] = v;
    }
    const attrs = {};
    for (const a of Array.from(el.attributes)) {
      if (a.name !== 'style') attrs[a.name] = a.value;
    }
    const text = Array.from(el.childNodes)
      .filter((n) => n.nodeType === Node.TEXT_NODE)
      .map((n) => n.textContent)
      .join('')
      .trim();
    const r = el.getBoundingClientRect();
    return {
      tag: el.tagName.toLowerCase(),
      attrs,
      text,
      style: el.getAttribute('style') || '',
      computed,
      rect: { x: r.left, y: r.top, width: r.width, height: r.height },
      scroll: { width: el.scrollWidth, height: el.scrollHeight },
      children: Array.from(el.children).map(serialize),
    };
  };
  return {
    viewport: { width: window.innerWidth, height: window.innerHeight },
    root: serialize(document.body),
  };
}
"""


def capture_snapshot(
    url: str,
    root_key: str = "pdf-content",
    *,
    properties: Iterable[str] | None = None,
    viewport: tuple[int, int] = (1280, 800),
    wait_until: str = "networkidle",
    timeout_ms: int = 30000,
) -> dict[str, Any]:
    """
    采集页面快照

    Args:
        url: 页面地址
        root_key: 根节点 id
        properties: 需要采集计算值的属性（默认取样式规范的枚举集合）
        viewport: 视口尺寸
        wait_until: 页面加载等待条件
        timeout_ms: 导航超时

    Returns:
        可被 document_from_dict 读取的快照字典

    Raises:
        ContentNotFoundError: 页面中不存在根节点
        SnapshotExportError: playwright 不可用
    """
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as e:
        raise SnapshotExportError("playwright未安装，无法采集页面（pip install .[capture]）") from e

    props = list(properties or load_style_spec().properties)

    with sync_playwright() as p:
        browser = p.chromium.launch()
        try:
            page = browser.new_page(viewport={"width": viewport[0], "height": viewport[1]})
            logger.info(f"采集页面: {url}")
            page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            if page.query_selector(f"[id='{root_key}']") is None:
                raise ContentNotFoundError(f"页面中未找到导出内容: #{root_key}")
            data = page.evaluate(_SERIALIZE_JS, {"props": props})
        finally:
            browser.close()

    parts = urlsplit(url)
    if parts.scheme in ("http", "https"):
        data["base_url"] = f"{parts.scheme}://{parts.netloc}"
    return data
