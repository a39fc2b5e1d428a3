"""
Pipeline 配置

pipeline.yaml 示例::

    data:
      csv_path: record.csv
      delimiter: ","
    model:
      name: lightgbm_multiclass
      params:
        minLeafSamples: 5
        maxLeaves: 31
        iterations: 100
        learningRate: 0.1
        maxBinsPerFeature: 50
    export:
      onnx_path: model.onnx
      target_opset: 15
      zipmap: false
    inference:
      features: [4, 5, 6, 7]
    tracking:
      mlflow: false

相对路径以配置文件所在目录为基准；未给出路径时使用 resolve_default_paths()。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..config import DEFAULT_CSV_NAME, DEFAULT_MODEL_NAME, logger, resolve_default_paths
from ..errors import PipelineDefinitionError
from .builder import TrainerOptions

SUPPORTED_MODELS = ("lightgbm_multiclass",)


@dataclass
class DataSection:
    csv_path: Path | None = None
    delimiter: str = ","
    feature_prefix: str = "Feature"
    label_name: str = "Label"


@dataclass
class ExportSection:
    onnx_path: Path | None = None
    target_opset: int = 15
    zipmap: bool = False
    write_sidecar: bool = True


@dataclass
class InferenceSection:
    features: list[float] | None = None
    label_placeholder: float = 0.0


@dataclass
class TrackingSection:
    mlflow: bool = False
    experiment_name: str | None = None


@dataclass
class PipelineConfig:
    """
    完整的 pipeline 配置。

    Attributes:
        data: CSV 输入配置
        model_name: 训练器名称（目前只支持 lightgbm_multiclass）
        trainer: 训练器选项
        export: ONNX 导出配置
        inference: 推理输入配置
        tracking: MLflow 记录配置
    """

    data: DataSection = field(default_factory=DataSection)
    model_name: str = "lightgbm_multiclass"
    trainer: TrainerOptions = field(default_factory=TrainerOptions)
    export: ExportSection = field(default_factory=ExportSection)
    inference: InferenceSection = field(default_factory=InferenceSection)
    tracking: TrackingSection = field(default_factory=TrackingSection)

    def __post_init__(self):
        if self.model_name not in SUPPORTED_MODELS:
            raise PipelineDefinitionError(f"Unsupported model '{self.model_name}'. Supported: {list(SUPPORTED_MODELS)}")
        if self.data.csv_path is None or self.export.onnx_path is None:
            default_csv, default_onnx = resolve_default_paths(DEFAULT_CSV_NAME, DEFAULT_MODEL_NAME)
            if self.data.csv_path is None:
                self.data.csv_path = default_csv
            if self.export.onnx_path is None:
                self.export.onnx_path = default_onnx

    @property
    def csv_path(self) -> Path:
        return Path(self.data.csv_path)

    @property
    def onnx_path(self) -> Path:
        return Path(self.export.onnx_path)

    @classmethod
    def from_dict(cls, config: dict[str, Any] | None, base_dir: str | Path | None = None) -> PipelineConfig:
        """从字典创建配置（相对路径以 base_dir 为基准）。"""
        config = config or {}
        unknown = set(config) - {"data", "model", "export", "inference", "tracking"}
        if unknown:
            raise PipelineDefinitionError(f"Unknown pipeline config section(s): {sorted(unknown)}")

        def _resolve(path):
            if path is None:
                return None
            path = Path(path)
            if base_dir is not None and not path.is_absolute():
                path = Path(base_dir) / path
            return path

        data_cfg = dict(config.get("data") or {})
        data_cfg["csv_path"] = _resolve(data_cfg.get("csv_path"))

        export_cfg = dict(config.get("export") or {})
        export_cfg["onnx_path"] = _resolve(export_cfg.get("onnx_path"))

        model_cfg = config.get("model") or {}

        try:
            return cls(
                data=DataSection(**data_cfg),
                model_name=model_cfg.get("name", "lightgbm_multiclass"),
                trainer=TrainerOptions.from_dict(model_cfg.get("params")),
                export=ExportSection(**export_cfg),
                inference=InferenceSection(**(config.get("inference") or {})),
                tracking=TrackingSection(**(config.get("tracking") or {})),
            )
        except TypeError as e:
            raise PipelineDefinitionError(f"Invalid pipeline config: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> PipelineConfig:
        """加载 pipeline.yaml。"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Pipeline config not found: {path}")

        with open(path) as f:
            config = yaml.safe_load(f)

        logger.info(f"Loaded pipeline config from {path}")
        return cls.from_dict(config, base_dir=path.parent)
