"""
配置层 - 加载运行期配置与样式属性规范

职责：
- 加载 config/snapshot_runtime.yaml（运行期参数）
- 加载 style_properties.yaml（枚举属性集合与取值词表）
- 提供类型安全的配置访问接口
"""

from .property_spec import StyleSpec, StyleSpecLoader, load_style_spec
from .runtime_config import RuntimeConfig, get_config, reload_config, setup_logging

__all__ = [
    "StyleSpecLoader",
    "StyleSpec",
    "load_style_spec",
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
