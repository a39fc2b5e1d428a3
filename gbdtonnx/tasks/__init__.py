"""
Tasks 子系统

包含：
- train: 拟合任务
- export: 导出任务（ONNX）
- predict: 预测任务
- inspect: 检查任务（schema / 数据检查）
"""
from .export import export_model, train_and_export
from .inspect import inspect_task
from .predict import build_inference_request, run_inference
from .train import TrainedModel, fit_pipeline

__all__ = [
    "TrainedModel",
    "fit_pipeline",
    "export_model",
    "train_and_export",
    "build_inference_request",
    "run_inference",
    "inspect_task",
]
