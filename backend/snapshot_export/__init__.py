"""
报告快照导出系统 - 后端核心模块

模块结构：
- config/     运行期配置与样式属性规范
- models/     数据模型定义（节点树/样式记录/资源/位图/分页）
- dom/        快照树加载、布局引擎适配、实时采集
- style/      样式归一化（内联/颜色解析/变换拍平/溢出修正）
- render/     光栅化与PDF文档写出
- pipeline/   导出流水线编排与单飞控制
"""

__version__ = "0.1.0"
