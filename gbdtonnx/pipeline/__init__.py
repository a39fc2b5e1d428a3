"""
Pipeline 模块

- builder: 声明式四步 pipeline（标签编码 / 特征拼接 / 训练器 / 标签解码）
- config: pipeline.yaml 配置
- orchestrator: 按顺序执行各阶段并返回每个阶段的结果
  （依赖 tasks，需从 gbdtonnx.pipeline.orchestrator 导入）
"""

from .builder import PipelineSpec, PipelineStep, TrainerOptions, build_pipeline, materialize
from .config import PipelineConfig

__all__ = [
    "PipelineConfig",
    "PipelineSpec",
    "PipelineStep",
    "TrainerOptions",
    "build_pipeline",
    "materialize",
]
