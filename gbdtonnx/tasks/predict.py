"""
预测任务

重新加载导出的 ONNX 模型，对一个特征向量执行推理，并输出每个命名的输出张量。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from ..config import logger
from ..data.schema import Schema
from ..errors import InferenceError
from ..serve import ONNXPredictor

# ZipMap 模式下 skl2onnx 把标签输出命名为 output_label
PREDICTED_LABEL_OUTPUTS = ("label", "output_label")


@dataclass
class InferenceReport:
    """
    单次推理的结果。

    Attributes:
        outputs: 按图输出顺序排列的 (name, value)
        predicted_key: 预测标签在训练标签中的键（模型没有标签映射时为 None）
        predicted_label: 预测的原始标签值（模型没有标签输出时为 None）
        lines: 控制台输出的文本行
    """

    outputs: list[tuple[str, Any]]
    predicted_key: int | None = None
    predicted_label: int | None = None
    lines: list[str] = field(default_factory=list)

    def output(self, name: str) -> Any:
        for output_name, value in self.outputs:
            if output_name == name:
                return value
        raise KeyError(name)


def demo_feature_vector(feature_count: int) -> list[float]:
    """演示用的特征向量：第 i 个特征取值 i + 4。"""
    return [float(i + 4) for i in range(feature_count)]


def _as_float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InferenceError(f"{what} must be numeric, got {value!r}") from e


def build_inference_request(
    schema: Schema,
    features: Sequence[float] | None = None,
    label_placeholder: float = 0.0,
) -> dict[str, np.ndarray]:
    """
    构建推理请求。

    每个特征位置对应一个 [1, 1] 的 float32 张量，名称为该位置生成的列名；
    另外附带一个标签占位张量（训练时的图可能声明了标签输入）。

    Args:
        schema: 训练时使用的 Schema
        features: 特征向量（默认使用演示向量）
        label_placeholder: 标签占位值

    Returns:
        输入名 → 张量

    Raises:
        InferenceError: 特征向量长度与 Schema 不一致，或包含非数值
    """
    if features is None:
        features = demo_feature_vector(schema.feature_count)

    if len(features) != schema.feature_count:
        raise InferenceError(f"Expected {schema.feature_count} feature value(s), got {len(features)}")

    request = {
        name: np.array([[_as_float(value, f"Feature '{name}'")]], dtype=np.float32)
        for name, value in zip(schema.feature_names, features)
    }
    request[schema.label_name] = np.array([[_as_float(label_placeholder, "Label placeholder")]], dtype=np.float32)
    return request


def is_numeric_tensor(value: Any) -> bool:
    return isinstance(value, np.ndarray) and (np.issubdtype(value.dtype, np.number) or value.dtype == np.bool_)


def format_result(outputs: list[tuple[str, Any]]) -> list[str]:
    """
    格式化推理结果。

    每个输出两行：名称，以及展平后的数值（非张量输出则为标记）。
    """
    lines = []
    for name, value in outputs:
        lines.append(f"Name: {name}")
        if is_numeric_tensor(value):
            lines.append("Values: " + ", ".join(str(v) for v in value.ravel().tolist()))
        else:
            lines.append("Non-tensor type")
    return lines


def decode_predicted_label(
    outputs: list[tuple[str, Any]],
    label_classes: Sequence[int] | None,
) -> tuple[int | None, int | None]:
    """
    读取图的标签输出，并给出它在训练标签中的键。

    导出的图已经完成键 → 值解码，label 输出即原始标签值。

    Args:
        outputs: 推理输出
        label_classes: 原始标签值，按键顺序排列

    Returns:
        (predicted_key, predicted_label)；模型没有标签输出时均为 None

    Raises:
        InferenceError: 预测的标签值不在训练时出现过的标签中
    """
    named = dict(outputs)
    value = next((named[name] for name in PREDICTED_LABEL_OUTPUTS if name in named), None)
    if not is_numeric_tensor(value) or value.size == 0:
        return None, None

    label = int(value.ravel()[0])
    if label_classes is None:
        return None, label

    classes = [int(c) for c in label_classes]
    if label not in classes:
        raise InferenceError(f"Predicted label {label} is not one of the trained label values {classes}")
    return classes.index(label), label


def run_inference(
    onnx_path: str | Path,
    schema: Schema | None = None,
    features: Sequence[float] | None = None,
    label_placeholder: float = 0.0,
) -> InferenceReport:
    """
    预测任务主函数。

    Args:
        onnx_path: 导出的 ONNX 模型路径
        schema: 训练时的 Schema（默认使用模型中嵌入的 Schema）
        features: 特征向量（默认使用演示向量）
        label_placeholder: 标签占位值

    Returns:
        InferenceReport

    Raises:
        ModelLoadError: 模型文件缺失或无效
        InferenceError: 请求构建或执行失败
    """
    logger.info("=" * 80)
    logger.info("Prediction Task")
    logger.info("=" * 80)

    with ONNXPredictor(onnx_path) as predictor:
        schema = schema or predictor.schema
        if schema is None:
            raise InferenceError(f"{onnx_path} carries no schema metadata; pass the training schema explicitly")

        request = build_inference_request(schema, features=features, label_placeholder=label_placeholder)
        outputs = predictor.run(request)
        label_classes = predictor.label_classes

    predicted_key, predicted_label = decode_predicted_label(outputs, label_classes)
    lines = format_result(outputs)
    for line in lines:
        logger.info(line)
    if predicted_label is not None:
        logger.info(f"Predicted label: {predicted_label}")

    return InferenceReport(outputs=outputs, predicted_key=predicted_key, predicted_label=predicted_label, lines=lines)
