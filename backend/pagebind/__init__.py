"""
pagebind - 数据绑定规格书/产品目录 组装后端核心模块

模块结构：
- config/     运行期配置、设计文档加载、日志
- models/     数据模型定义
- layout/     动态重排（表格自适应高度 + 级联位移）
- catalog/    目录结构规划（封面/目录/章节/产品/封底 + 页码映射）
- render/     单页文档渲染（文本/图片/形状/二维码/表格/目录）
- pipeline/   文档组装、分块、任务派发与轮询
"""

__version__ = "0.1.0"
