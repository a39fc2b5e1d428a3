"""
模型元数据工具

模型元数据包含：
- schema: 训练时使用的列结构（特征列名、标签列名）
- label_classes: 原始标签值，按键顺序排列（用于键 → 值解码）
- trainer_options: 训练器选项

元数据以字符串属性的形式嵌入 ONNX 文件（metadata_props），
同时可以保存为同目录下的 JSON 文件，便于人工查看。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .config import logger
from .data.schema import Schema

__all__ = [
    "METADATA_PREFIX",
    "build_model_metadata",
    "read_embedded_metadata",
    "save_model_metadata",
    "load_model_metadata",
    "sidecar_path",
]

METADATA_PREFIX = "gbdtonnx."
SCHEMA_KEY = METADATA_PREFIX + "schema"
LABEL_CLASSES_KEY = METADATA_PREFIX + "label_classes"
TRAINER_OPTIONS_KEY = METADATA_PREFIX + "trainer_options"


def build_model_metadata(schema: Schema, label_classes: list[int], trainer_options: dict[str, Any]) -> dict[str, str]:
    """
    构建要嵌入 ONNX 文件的元数据属性。

    Returns:
        dict[str, str]: ONNX metadata_props 只接受字符串值
    """
    return {
        SCHEMA_KEY: json.dumps(schema.to_dict()),
        LABEL_CLASSES_KEY: json.dumps([int(c) for c in label_classes]),
        TRAINER_OPTIONS_KEY: json.dumps(trainer_options),
    }


def read_embedded_metadata(props: dict[str, str]) -> dict[str, Any]:
    """
    解析推理会话报告的自定义元数据。

    Args:
        props: onnxruntime ModelMetadata.custom_metadata_map

    Returns:
        dict，包含 schema（Schema 或 None）、label_classes（list 或 None）、trainer_options
    """
    metadata: dict[str, Any] = {"schema": None, "label_classes": None, "trainer_options": None}
    try:
        if SCHEMA_KEY in props:
            metadata["schema"] = Schema.from_dict(json.loads(props[SCHEMA_KEY]))
        if LABEL_CLASSES_KEY in props:
            metadata["label_classes"] = json.loads(props[LABEL_CLASSES_KEY])
        if TRAINER_OPTIONS_KEY in props:
            metadata["trainer_options"] = json.loads(props[TRAINER_OPTIONS_KEY])
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable embedded model metadata: {e}")
    return metadata


def sidecar_path(onnx_path: str | Path) -> Path:
    """ONNX 文件对应的 JSON 元数据路径（model.onnx → model.onnx.json）。"""
    onnx_path = Path(onnx_path)
    return onnx_path.with_name(onnx_path.name + ".json")


def save_model_metadata(
    metadata_path: str | Path,
    schema: Schema,
    label_classes: list[int],
    trainer_options: dict[str, Any],
    **kwargs,
) -> None:
    """
    保存模型元数据到 JSON 文件。

    Args:
        metadata_path: 元数据文件路径
        schema: 列结构
        label_classes: 原始标签值（按键顺序）
        trainer_options: 训练器选项
        **kwargs: 其他元数据（如 metrics、onnx_path）
    """
    metadata_path = Path(metadata_path)
    metadata_path.parent.mkdir(parents=True, exist_ok=True)

    metadata = {
        "schema": schema.to_dict(),
        "label_classes": [int(c) for c in label_classes],
        "trainer_options": trainer_options,
        **kwargs,
    }

    def default_serializer(obj):
        """默认序列化器，处理 numpy 类型。"""
        import numpy as np

        if isinstance(obj, (np.integer, np.floating)):
            return obj.item()
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, Path):
            return str(obj)
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

    with open(metadata_path, "w") as f:
        json.dump(metadata, f, indent=2, default=default_serializer)

    logger.info(f"Model metadata saved to {metadata_path}")


def load_model_metadata(metadata_path: str | Path) -> dict[str, Any]:
    """
    从 JSON 文件加载模型元数据。

    Returns:
        dict: 模型元数据，其中 schema 已还原为 Schema
    """
    metadata_path = Path(metadata_path)
    if not metadata_path.exists():
        raise FileNotFoundError(f"Metadata file not found: {metadata_path}")

    with open(metadata_path) as f:
        metadata = json.load(f)

    metadata["schema"] = Schema.from_dict(metadata["schema"])
    logger.info(f"Model metadata loaded from {metadata_path}")
    return metadata
