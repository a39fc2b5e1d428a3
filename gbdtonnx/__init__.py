"""
gbdtonnx

CSV → 梯度提升树多分类 → ONNX → ONNX Runtime 推理。
"""

__version__ = "0.1.0"
