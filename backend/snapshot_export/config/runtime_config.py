"""
运行期配置 - 读取导出运行期参数 YAML

职责：
- 加载页面几何/光栅化/超时/同步屏障等运行参数
- 提供环境变量覆盖机制（前缀 SNAPSHOT_）
- 类型安全的配置访问
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ExportConfig(BaseModel):
    """导出目标配置"""

    root_key: str = "pdf-content"
    clone_id: str = "pdf-content-clone"
    file_name: str = "report.pdf"
    control_markers: list[str] = Field(
        default_factory=lambda: ["Download PDF", "Generating PDF", "Loading"]
    )
    clone_z_index: int = -9999
    fallback_background: str = "#8c52ff"
    history_limit: int = 100  # 任务记录上限，超出后淘汰最早的已结束任务


class PageConfig(BaseModel):
    """页面几何（与像素密度无关）"""

    orientation: str = "portrait"
    unit: str = "in"
    format: str = "a4"
    width: float = 8.27
    height: float = 11.69
    margin_top_bottom: float = 0.3
    margin_left_right: float = 0.7


class RasterConfig(BaseModel):
    """光栅化配置"""

    scale: float = 2.0
    background_color: str = "#8c52ff"
    image_format: str = "JPEG"
    image_quality: int = 98
    allow_taint: bool = False
    use_cors: bool = True


class TimeoutConfig(BaseModel):
    """超时配置"""

    asset_load_ms: int = 3000
    asset_fetch_sec: int = 10


class BarrierConfig(BaseModel):
    """同步屏障配置（毫秒）"""

    style_settle_ms: int = 300
    transform_settle_ms: int = 200
    asset_settle_ms: int = 800
    poll_interval_ms: int = 50
    poll_until_stable: bool = False


class AssetConfig(BaseModel):
    """资源路径解析配置"""

    base_url: str | None = None
    base_dir: Path | None = None


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "snapshot_export.log"


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 输出目录
    output_dir: Path = Path(".")

    # 各子配置
    export: ExportConfig = Field(default_factory=ExportConfig)
    page: PageConfig = Field(default_factory=PageConfig)
    raster: RasterConfig = Field(default_factory=RasterConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    barriers: BarrierConfig = Field(default_factory=BarrierConfig)
    assets: AssetConfig = Field(default_factory=AssetConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "SNAPSHOT_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            export=ExportConfig(**cls._extract(runtime_opts, "export")),
            page=PageConfig(**cls._extract(runtime_opts, "page")),
            raster=RasterConfig(**cls._extract(runtime_opts, "raster")),
            timeouts=TimeoutConfig(**cls._extract(runtime_opts, "timeouts")),
            barriers=BarrierConfig(**cls._extract(runtime_opts, "barriers")),
            assets=AssetConfig(**cls._extract(runtime_opts, "assets")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )
        output_dir = runtime_opts.get("output_dir")
        if isinstance(output_dir, dict):
            output_dir = output_dir.get("default")
        if output_dir:
            config.output_dir = Path(output_dir)

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key, {})
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if self.assets.base_dir and not self.assets.base_dir.is_absolute():
            self.assets.base_dir = (base_dir / self.assets.base_dir).resolve()
        if not self.output_dir.is_absolute():
            self.output_dir = (base_dir / self.output_dir).resolve()

    def get_output_path(self, file_name: str | None = None) -> Path:
        """获取导出文件路径"""
        return self.output_dir / (file_name or self.export.file_name)

    def ensure_dirs(self) -> None:
        """确保输出目录存在"""
        self.output_dir.mkdir(parents=True, exist_ok=True)


def setup_logging(config: RuntimeConfig) -> None:
    """按 LoggingConfig 配置根日志"""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.log_to_file:
        log_path = config.output_dir / config.logging.log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=config.logging.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = Path("config/snapshot_runtime.yaml")
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or "config/snapshot_runtime.yaml"
    _config = RuntimeConfig.from_yaml(path)
    return _config
