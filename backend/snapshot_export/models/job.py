"""
导出任务模型 - 单次导出调用的状态与生命周期

状态机：
- ExportState（管理器级）: idle → exporting → {idle, failed}
- ExportStatus（任务级）: running → {succeeded, failed}；被单飞拒绝的调用为 rejected
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ExportState(str, Enum):
    """导出管理器状态"""
    IDLE = "idle"
    EXPORTING = "exporting"
    FAILED = "failed"


class ExportStatus(str, Enum):
    """任务状态枚举"""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"


class ExportProgress(BaseModel):
    """任务进度"""
    stage: str = "INIT"
    percent: int = 0
    message: str = ""


class ExportJob(BaseModel):
    """导出任务实体"""
    job_id: str = Field(..., description="UUID")
    root_key: str

    # 状态
    status: ExportStatus = ExportStatus.QUEUED
    progress: ExportProgress = Field(default_factory=ExportProgress)

    # 结果
    output_path: Path | None = None
    page_count: int = 0
    flags: list[str] = Field(default_factory=list, description="降级告警标记")
    errors: list[str] = Field(default_factory=list, description="错误信息")

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def mark_running(self, stage: str = "LOCATE") -> None:
        """标记为运行中"""
        self.status = ExportStatus.RUNNING
        self.started_at = datetime.now()
        self.progress.stage = stage

    def mark_succeeded(self) -> None:
        """标记为成功"""
        self.status = ExportStatus.SUCCEEDED
        self.finished_at = datetime.now()
        self.progress.percent = 100

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.status = ExportStatus.FAILED
        self.finished_at = datetime.now()
        self.errors.append(error)

    def mark_rejected(self, error: str) -> None:
        """标记为被拒绝（单飞）"""
        self.status = ExportStatus.REJECTED
        self.finished_at = datetime.now()
        self.errors.append(error)

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)
