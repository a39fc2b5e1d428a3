"""
ONNX 推理接口

使用 ONNX Runtime 加载导出的模型并执行推理。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

try:
    import onnxruntime as ort

    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from ..config import logger
from ..errors import InferenceError, ModelLoadError
from ..metadata import read_embedded_metadata


class ONNXPredictor:
    """
    ONNX 预测器

    持有一个推理会话；可作为上下文管理器使用，退出时释放会话。
    """

    def __init__(self, onnx_path: str | Path, providers: Optional[List[str]] = None):
        """
        初始化 ONNX 预测器。

        Args:
            onnx_path: ONNX 模型文件路径
            providers: 执行提供者列表（默认 ['CPUExecutionProvider']）

        Raises:
            ModelLoadError: 文件缺失、不可读或不是有效的 ONNX 图
        """
        if not ONNX_AVAILABLE:
            raise ImportError("onnxruntime is not installed. Install with: pip install onnxruntime")

        self.onnx_path = str(onnx_path)
        if not Path(onnx_path).is_file():
            raise ModelLoadError(f"ONNX model file not found: {onnx_path}")

        if providers is None:
            providers = ["CPUExecutionProvider"]

        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        try:
            self.session = ort.InferenceSession(
                self.onnx_path,
                sess_options=sess_options,
                providers=providers,
            )
        except Exception as e:
            raise ModelLoadError(f"Error creating InferenceSession from {onnx_path}: {e}") from e

        self.input_names = [i.name for i in self.session.get_inputs()]
        self.output_names = [o.name for o in self.session.get_outputs()]

        metadata = read_embedded_metadata(self.session.get_modelmeta().custom_metadata_map)
        self.schema = metadata["schema"]
        self.label_classes = metadata["label_classes"]

        logger.info(f"ONNX model loaded from {self.onnx_path}")
        logger.info(f"Inputs: {self.input_names}, Outputs: {self.output_names}")
        logger.info(f"Providers: {providers}")

    def __enter__(self) -> ONNXPredictor:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """释放推理会话。"""
        self.session = None

    def run(self, feeds: Dict[str, np.ndarray]) -> List[Tuple[str, Any]]:
        """
        执行一次推理。

        图中未声明的输入会被忽略；缺少声明的输入则报错。

        Args:
            feeds: 输入名 → 张量

        Returns:
            按图输出顺序排列的 (name, value) 列表

        Raises:
            InferenceError: 会话已关闭、缺少输入或运行时失败
        """
        if self.session is None:
            raise InferenceError("Inference session is closed")

        missing = [name for name in self.input_names if name not in feeds]
        if missing:
            raise InferenceError(f"Missing input tensor(s) required by the model: {missing}")

        unused = [name for name in feeds if name not in self.input_names]
        if unused:
            logger.debug(f"Model does not declare input(s) {unused}; not feeding them")

        ort_inputs = {name: feeds[name] for name in self.input_names}
        try:
            outputs = self.session.run(None, ort_inputs)
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        return list(zip(self.output_names, outputs))

    def get_model_info(self) -> Dict[str, Any]:
        """获取模型信息。"""
        if self.session is None:
            raise InferenceError("Inference session is closed")

        return {
            "onnx_path": self.onnx_path,
            "inputs": [{"name": i.name, "shape": i.shape, "type": i.type} for i in self.session.get_inputs()],
            "outputs": [{"name": o.name, "shape": o.shape, "type": o.type} for o in self.session.get_outputs()],
            "label_classes": self.label_classes,
            "num_features": self.schema.feature_count if self.schema is not None else None,
        }
