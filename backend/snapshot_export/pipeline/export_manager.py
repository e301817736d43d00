"""
导出管理器 - 单飞状态机与任务记录

状态机：Idle → Exporting → {Idle, Failed}；Failed 可被下一次调用重新进入
- 导出进行中再次调用：立即拒绝（ExportInProgressError），不触碰文档、不创建克隆
- 致命错误在顶层捕获，转换为单条用户可读消息；清理先于结果返回完成

测试要点：
- test_single_flight_rejects_second_call: 并发第二次调用被拒绝
- test_failure_returns_message: 失败结果携带可读消息
- test_failed_state_reenterable: 失败状态可重新进入
- test_cancelled_export_releases_guard: 取消后可再次导出
- test_history_limit: 任务记录有上限
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from ..config import RuntimeConfig, get_config
from ..interfaces import ExportInProgressError, IDocument, SnapshotExportError
from ..models import ExportJob, ExportState, ExportStatus, SnapshotDocument
from .executor import ExportOutcome, ExportPipeline

logger = logging.getLogger(__name__)


def format_error_message(error: BaseException) -> str:
    """致命错误 → 单条用户可读消息"""
    detail = str(error) or error.__class__.__name__
    return f"PDF生成失败: {detail}"


@dataclass
class ExportResult:
    """导出结果（成功携带文档，失败携带错误与消息）"""
    ok: bool
    job: ExportJob
    document: IDocument | None = None
    outcome: ExportOutcome | None = None
    error: Exception | None = None
    message: str = ""

    def unwrap(self) -> IDocument:
        """成功时返回文档，失败时抛出原错误"""
        if self.ok and self.document is not None:
            return self.document
        raise self.error or SnapshotExportError(self.message)


class ExportManager:
    """导出管理器"""

    def __init__(self, pipeline: ExportPipeline | None = None, config: RuntimeConfig | None = None):
        self.config = config or (pipeline.config if pipeline is not None else get_config())
        self.pipeline = pipeline or ExportPipeline(self.config)
        self.state = ExportState.IDLE
        self._jobs: dict[str, ExportJob] = {}  # 内存任务记录

    @property
    def is_exporting(self) -> bool:
        return self.state is ExportState.EXPORTING

    async def export(
        self,
        document: SnapshotDocument,
        root_key: str | None = None,
        output_path: str | Path | None = None,
        save: bool = True,
    ) -> ExportResult:
        """
        导出文档

        Args:
            document: 源文档
            root_key: 根节点查找键（默认取配置）
            output_path: 保存路径（默认 output_dir/file_name）
            save: 是否落盘

        Returns:
            ExportResult
        """
        job = ExportJob(job_id=str(uuid.uuid4()), root_key=root_key or self.config.export.root_key)
        self._remember(job)

        # 检查与置位之间不得有 await
        if self.state is ExportState.EXPORTING:
            error = ExportInProgressError("已有导出正在进行，请稍后重试")
            job.mark_rejected(str(error))
            logger.warning(f"[{job.job_id}] 导出被拒绝: 已有导出正在进行")
            return ExportResult(ok=False, job=job, error=error, message=str(error))

        self.state = ExportState.EXPORTING
        job.mark_running()

        path: Path | None = None
        if save:
            path = Path(output_path) if output_path else self.config.get_output_path()

        try:
            outcome = await self.pipeline.run(document, job, path)
        except Exception as e:
            self.state = ExportState.FAILED
            message = format_error_message(e)
            job.mark_failed(message)
            if isinstance(e, SnapshotExportError):
                logger.error(f"[{job.job_id}] {message}")
            else:
                logger.exception(f"[{job.job_id}] 导出出现未预期错误")
            return ExportResult(ok=False, job=job, error=e, message=message)
        except BaseException:
            # 取消或中断：释放单飞状态后继续上抛
            self.state = ExportState.FAILED
            job.mark_failed("PDF生成失败: 导出已取消")
            logger.warning(f"[{job.job_id}] 导出被取消")
            raise

        self.state = ExportState.IDLE
        job.mark_succeeded()
        message = f"导出完成: {job.page_count} 页"
        if job.output_path is not None:
            message += f" -> {job.output_path}"
        logger.info(f"[{job.job_id}] {message}")
        return ExportResult(ok=True, job=job, document=outcome.document, outcome=outcome, message=message)

    def _remember(self, job: ExportJob) -> None:
        """记录任务，超出上限时淘汰最早的已结束任务"""
        self._jobs[job.job_id] = job
        limit = max(self.config.export.history_limit, 1)
        for job_id in list(self._jobs):
            if len(self._jobs) <= limit:
                break
            if self._jobs[job_id].status is not ExportStatus.RUNNING and job_id != job.job_id:
                del self._jobs[job_id]

    def get_job(self, job_id: str) -> ExportJob | None:
        """获取任务"""
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[ExportJob]:
        """按创建时间列出任务"""
        return sorted(self._jobs.values(), key=lambda j: j.created_at)
