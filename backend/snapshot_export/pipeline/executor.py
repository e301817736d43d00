"""
流水线执行器 - 编排导出各阶段

职责：
1. 严格按顺序执行各阶段，阶段之间插入命名同步屏障
2. 更新任务进度、记录非致命降级标记
3. 光栅化前校验克隆尺寸（为零 → ZeroDimensionError）
4. 任何退出路径（成功/异常/提前中止）都执行清理，摘除克隆

测试要点：
- test_execute_full_pipeline: 完整流水线执行
- test_cleanup_on_failure: 各阶段注入失败后无残留克隆
- test_idempotent_reexport: 重复导出位图尺寸一致
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import RuntimeConfig, StyleSpec, get_config, load_style_spec
from ..dom.layout import SnapshotLayoutEngine
from ..interfaces import (
    IAssetLoader,
    IColorProbe,
    IDocument,
    IDocumentWriter,
    ILayoutEngine,
    IRasterizer,
    RenderFailureError,
    SnapshotExportError,
    ZeroDimensionError,
)
from ..models import AssetState, Bitmap, Element, ExportJob, PageGeometry, RenderOptions, SnapshotDocument
from ..render import PillowRasterizer, ReportLabDocumentWriter
from ..style import CssColorProbe, StyleNormalizer
from .assets import AssetSynchronizer, DefaultAssetLoader, SyncReport
from .cloner import SnapshotCloner
from .content_filter import ContentFilter
from .paginator import PaginationResult, Paginator
from .stages import EXPORT_STAGES, BarrierEnum, PipelineStage, StageEnum, build_barriers

logger = logging.getLogger(__name__)


@dataclass
class ExportOutcome:
    """单次流水线运行的产物"""
    document: IDocument
    bitmap: Bitmap
    pagination: PaginationResult
    assets: SyncReport | None = None
    output_path: Path | None = None
    stats: dict[str, Any] = field(default_factory=dict)


class ExportPipeline:
    """导出流水线（不持有跨调用状态，每次运行新建克隆）"""

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        *,
        spec: StyleSpec | None = None,
        engine: ILayoutEngine | None = None,
        probe: IColorProbe | None = None,
        loader: IAssetLoader | None = None,
        rasterizer: IRasterizer | None = None,
        writer: IDocumentWriter | None = None,
    ):
        self.config = config or get_config()
        self.spec = spec or load_style_spec()
        self.engine = engine or SnapshotLayoutEngine(self.spec)
        self.probe = probe or CssColorProbe()
        self.loader = loader or DefaultAssetLoader(fetch_timeout=self.config.timeouts.asset_fetch_sec)
        self.rasterizer = rasterizer or PillowRasterizer(self.spec, self.probe)
        self.writer = writer or ReportLabDocumentWriter()

        self.cloner = SnapshotCloner(self.config.export, self.engine)
        self.content_filter = ContentFilter(self.config.export.control_markers)
        self.normalizer = StyleNormalizer(self.engine, self.probe, self.spec)
        self.paginator = Paginator(
            PageGeometry.from_config(self.config.page),
            self.config.raster.image_format,
            self.config.raster.image_quality,
        )
        self.barriers = build_barriers(self.config.barriers)

    async def run(
        self,
        document: SnapshotDocument,
        job: ExportJob,
        output_path: str | Path | None = None,
    ) -> ExportOutcome:
        """
        执行流水线

        Args:
            document: 源文档（克隆挂载到其 body，结束后摘除）
            job: 导出任务（记录进度与降级标记）
            output_path: 保存路径；None 时只生成文档不落盘

        Raises:
            ContentNotFoundError / ZeroDimensionError / RenderFailureError / DocumentWriteError
        """
        context: dict[str, Any] = {
            "output_path": Path(output_path) if output_path else None,
            "base_url": self.config.assets.base_url or document.base_url,
        }
        try:
            for stage in EXPORT_STAGES:
                await self._execute_stage(job, stage, document, context)
        finally:
            self._cleanup(job, document, context.get("clone"))

        return ExportOutcome(
            document=context["pagination"].document,
            bitmap=context["bitmap"],
            pagination=context["pagination"],
            assets=context.get("assets"),
            output_path=context["output_path"],
            stats=context.get("stats", {}),
        )

    async def _execute_stage(
        self,
        job: ExportJob,
        stage: PipelineStage,
        document: SnapshotDocument,
        context: dict[str, Any],
    ) -> None:
        """执行单个阶段"""
        job.progress.stage = stage.name
        job.progress.percent = stage.progress_start
        job.progress.message = f"开始阶段: {stage.name}"
        logger.info(f"[{job.job_id}] 开始阶段: {stage.name}")

        try:
            if stage.name == StageEnum.LOCATE.value:
                context["source"] = self.cloner.locate(document, job.root_key)

            elif stage.name == StageEnum.CLONE.value:
                context["clone"] = self.cloner.clone(document, context["source"])

            elif stage.name == StageEnum.FILTER.value:
                result = self.content_filter.filter(context["clone"])
                context.setdefault("stats", {})["removed_controls"] = result.removed_controls

            elif stage.name == StageEnum.NORMALIZE.value:
                await self._stage_normalize(job, context)

            elif stage.name == StageEnum.SYNC_ASSETS.value:
                await self._stage_sync_assets(job, context)

            elif stage.name == StageEnum.RASTERIZE.value:
                self._stage_rasterize(job, context)

            elif stage.name == StageEnum.PAGINATE.value:
                self._stage_paginate(job, context)

        except Exception as e:
            logger.error(f"[{job.job_id}] 阶段失败 {stage.name}: {e}")
            job.add_flag(f"阶段失败:{stage.name}")
            raise

        job.progress.percent = stage.progress_end
        job.progress.message = f"完成阶段: {stage.name}"

    async def _stage_normalize(self, job: ExportJob, context: dict[str, Any]) -> None:
        """约束释放 → 样式内联 → 文本颜色复核 → [STYLE_SETTLE] → 变换展平 → 溢出放宽 → [TRANSFORM_SETTLE]"""
        clone: Element = context["clone"]
        stats = context.setdefault("stats", {})

        stats["relieved"] = self.normalizer.relieve_constraints(clone)
        stats["inlined"] = len(self.normalizer.inline_styles(clone))
        stats["recolored"] = self.normalizer.ensure_text_colors(clone)
        await self._settle(BarrierEnum.STYLE_SETTLE, clone)

        stats["flattened"] = self.normalizer.flatten_transforms(clone)
        stats["widened"] = self.normalizer.widen_overflow(clone)
        await self._settle(BarrierEnum.TRANSFORM_SETTLE, clone)

        logger.info(
            f"[{job.job_id}] 归一化: 内联 {stats['inlined']} 节点, 释放 max-width {stats['relieved']}, "
            f"展平变换 {stats['flattened']}, 放宽溢出 {stats['widened']}"
        )

    async def _stage_sync_assets(self, job: ExportJob, context: dict[str, Any]) -> None:
        """资源就绪同步 → [ASSET_SETTLE]"""
        clone: Element = context["clone"]
        synchronizer = AssetSynchronizer(
            self.loader,
            self.engine,
            timeout_ms=self.config.timeouts.asset_load_ms,
            base_url=context["base_url"],
            base_dir=self.config.assets.base_dir,
        )
        handles = synchronizer.collect(clone)
        report = await synchronizer.synchronize(handles)
        for handle in report.handles:
            if handle.state is AssetState.TIMED_OUT:
                job.add_flag(f"资源超时:{handle.src[:80]}")
            elif handle.state is AssetState.FAILED:
                job.add_flag(f"资源失败:{handle.src[:80]}")
        context["assets"] = report
        await self._settle(BarrierEnum.ASSET_SETTLE, clone)

    def _stage_rasterize(self, job: ExportJob, context: dict[str, Any]) -> None:
        """重新测量尺寸后光栅化（尺寸为零时中止）"""
        clone: Element = context["clone"]
        width, height = self.measure(clone)
        if width <= 0 or height <= 0:
            raise ZeroDimensionError(f"克隆内容尺寸为零 ({width:g}x{height:g})，无法生成PDF")

        raster = self.config.raster
        options = RenderOptions(
            scale=raster.scale,
            background_color=raster.background_color,
            width=width,
            height=height,
            use_cors=raster.use_cors,
            allow_taint=raster.allow_taint,
        )
        try:
            bitmap = self.rasterizer.render(clone, options, on_clone=self._pre_capture)
        except SnapshotExportError:
            raise
        except Exception as e:
            raise RenderFailureError(f"光栅化失败: {e}") from e

        context["bitmap"] = bitmap
        logger.info(f"[{job.job_id}] 位图: {bitmap.width}x{bitmap.height} (内容 {width:g}x{height:g})")

    def _stage_paginate(self, job: ExportJob, context: dict[str, Any]) -> None:
        pagination = self.paginator.paginate(context["bitmap"], self.writer)
        context["pagination"] = pagination
        job.page_count = pagination.page_count

        output_path: Path | None = context["output_path"]
        if output_path is not None:
            pagination.document.save(str(output_path))
            job.output_path = output_path

    def measure(self, clone: Element) -> tuple[float, float]:
        """克隆完整尺寸 = max(可滚动尺寸, 包围盒)"""
        rect = self.engine.bounding_rect(clone)
        scroll_width, scroll_height = self.engine.scroll_size(clone)
        return max(scroll_width, rect.width), max(scroll_height, rect.height)

    def _pre_capture(self, document: SnapshotDocument, duplicate: Element) -> None:
        """预采集钩子：在渲染副本上复核文本颜色并放宽溢出"""
        self.normalizer.ensure_text_colors(duplicate)
        self.normalizer.widen_overflow(duplicate)

    async def _settle(self, barrier: BarrierEnum, clone: Element) -> None:
        metric = None
        if self.config.barriers.poll_until_stable:
            metric = lambda: self.engine.scroll_size(clone)  # noqa: E731
        await self.barriers[barrier.value].wait(metric)

    def _cleanup(self, job: ExportJob, document: SnapshotDocument, clone: Element | None) -> None:
        """摘除克隆（所有退出路径）"""
        job.progress.stage = StageEnum.CLEANUP.value
        removed = self.cloner.cleanup(document, clone)
        logger.info(f"[{job.job_id}] 清理完成: 摘除克隆 {removed} 个")
