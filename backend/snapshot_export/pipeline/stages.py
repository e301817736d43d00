"""
流水线阶段定义

职责：
1. 定义各阶段的名称与进度区间
2. 定义同步屏障（固定等待 / 轮询至布局稳定）

测试要点：
- test_stage_order: 阶段顺序
- test_barrier_zero_delay: 零延迟屏障立即返回
- test_barrier_poll_until_stable: 轮询在两次读数一致时提前返回
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ..config.runtime_config import BarrierConfig

logger = logging.getLogger(__name__)


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    LOCATE = "LOCATE"
    CLONE = "CLONE"
    FILTER = "FILTER"
    NORMALIZE = "NORMALIZE"
    SYNC_ASSETS = "SYNC_ASSETS"
    RASTERIZE = "RASTERIZE"
    PAGINATE = "PAGINATE"
    CLEANUP = "CLEANUP"


@dataclass
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点


# 导出流水线各阶段配置（严格顺序）
EXPORT_STAGES: list[PipelineStage] = [
    PipelineStage(StageEnum.LOCATE.value, 0, 5),
    PipelineStage(StageEnum.CLONE.value, 5, 10),
    PipelineStage(StageEnum.FILTER.value, 10, 15),
    PipelineStage(StageEnum.NORMALIZE.value, 15, 45),
    PipelineStage(StageEnum.SYNC_ASSETS.value, 45, 60),
    PipelineStage(StageEnum.RASTERIZE.value, 60, 85),
    PipelineStage(StageEnum.PAGINATE.value, 85, 100),
]


class BarrierEnum(str, Enum):
    """同步屏障枚举"""
    STYLE_SETTLE = "STYLE_SETTLE"
    TRANSFORM_SETTLE = "TRANSFORM_SETTLE"
    ASSET_SETTLE = "ASSET_SETTLE"


@dataclass(frozen=True)
class SettleBarrier:
    """
    同步屏障

    样式/可见性修改不保证同步完成重排，屏障在阶段之间提供固定的稳定窗口。
    提供 metric 时改为轮询：两次连续读数一致即返回，最长等待 delay_ms。
    """
    name: str
    reason: str
    delay_ms: int
    poll_interval_ms: int = 50

    async def wait(self, metric: Callable[[], Any] | None = None) -> float:
        """等待屏障，返回实际等待秒数"""
        started = time.monotonic()
        if self.delay_ms <= 0:
            return 0.0

        if metric is None:
            await asyncio.sleep(self.delay_ms / 1000)
        else:
            deadline = started + self.delay_ms / 1000
            interval = max(self.poll_interval_ms, 1) / 1000
            last = metric()
            while time.monotonic() < deadline:
                await asyncio.sleep(min(interval, max(0.0, deadline - time.monotonic())))
                current = metric()
                if current == last:
                    break
                last = current

        elapsed = time.monotonic() - started
        logger.debug(f"屏障 {self.name} 完成 ({elapsed * 1000:.0f}ms): {self.reason}")
        return elapsed


def build_barriers(config: BarrierConfig) -> dict[str, SettleBarrier]:
    """由配置构建三个命名屏障"""
    return {
        BarrierEnum.STYLE_SETTLE.value: SettleBarrier(
            BarrierEnum.STYLE_SETTLE.value,
            "内联样式写入后等待重排",
            config.style_settle_ms,
            config.poll_interval_ms,
        ),
        BarrierEnum.TRANSFORM_SETTLE.value: SettleBarrier(
            BarrierEnum.TRANSFORM_SETTLE.value,
            "变换展平与溢出放宽后等待几何稳定",
            config.transform_settle_ms,
            config.poll_interval_ms,
        ),
        BarrierEnum.ASSET_SETTLE.value: SettleBarrier(
            BarrierEnum.ASSET_SETTLE.value,
            "图片来源与可见性修改后等待布局稳定",
            config.asset_settle_ms,
            config.poll_interval_ms,
        ),
    }
