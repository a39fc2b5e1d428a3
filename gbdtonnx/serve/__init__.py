"""
服务模块

提供：
- ONNX 推理接口
"""
from .onnx_predictor import ONNXPredictor

__all__ = ["ONNXPredictor"]
