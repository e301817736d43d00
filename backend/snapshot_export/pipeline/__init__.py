"""
流水线层 - 克隆 → 过滤 → 归一化 → 资源同步 → 光栅化 → 分页 → 清理
"""

from .assets import AssetSynchronizer, DefaultAssetLoader, SyncReport, absolutize_source
from .cloner import SnapshotCloner
from .content_filter import ContentFilter, FilterResult
from .executor import ExportOutcome, ExportPipeline
from .export_manager import ExportManager, ExportResult, format_error_message
from .paginator import PaginationResult, Paginator, compute_page_layout, plan_slices
from .stages import EXPORT_STAGES, BarrierEnum, PipelineStage, SettleBarrier, StageEnum, build_barriers

__all__ = [
    "AssetSynchronizer",
    "DefaultAssetLoader",
    "SyncReport",
    "absolutize_source",
    "SnapshotCloner",
    "ContentFilter",
    "FilterResult",
    "ExportPipeline",
    "ExportOutcome",
    "ExportManager",
    "ExportResult",
    "format_error_message",
    "Paginator",
    "PaginationResult",
    "compute_page_layout",
    "plan_slices",
    "EXPORT_STAGES",
    "StageEnum",
    "BarrierEnum",
    "PipelineStage",
    "SettleBarrier",
    "build_barriers",
]
