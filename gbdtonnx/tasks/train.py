"""
训练任务

在完整数据集上拟合 pipeline（不做训练/验证划分）。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from ..config import logger
from ..data.schema import Schema
from ..errors import PipelineDefinitionError, TrainingError
from ..pipeline.builder import STEP_TRAINER, PipelineSpec, materialize


@dataclass
class TrainedModel:
    """
    拟合后的 pipeline。

    Attributes:
        estimator: 拟合后的 sklearn Pipeline（特征拼接 + 训练器）
        spec: 对应的 pipeline 声明
        metrics: 训练集上的指标
    """

    estimator: Any
    spec: PipelineSpec
    metrics: dict[str, float] = field(default_factory=dict)

    @property
    def schema(self) -> Schema:
        return self.spec.schema

    @property
    def classifier(self) -> Any:
        return self.estimator.named_steps[STEP_TRAINER]

    @property
    def classes(self) -> list[int]:
        """原始标签值，按键顺序排列。"""
        return [int(c) for c in self.classifier.classes_]

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """预测原始标签值。"""
        return np.asarray(self.estimator.predict(frame[self.schema.feature_names])).astype(np.int64)

    def predict_keys(self, frame: pd.DataFrame) -> np.ndarray:
        """预测类别键（标签值在 classes 中的位置）。"""
        return np.searchsorted(np.asarray(self.classes), self.predict(frame))

    def predict_proba(self, frame: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.estimator.predict_proba(frame[self.schema.feature_names]))


def _encode_labels(values: np.ndarray) -> np.ndarray:
    """检查标签是否为有限整数值，并转换为 int64。"""
    if not np.all(np.isfinite(values)):
        raise TrainingError("Label column contains non-finite values")
    if not np.all(np.mod(values, 1) == 0):
        raise TrainingError("Label column contains non-integral values; class labels must be whole numbers")
    return values.astype(np.int64)


def fit_pipeline(spec: PipelineSpec, frame: pd.DataFrame) -> TrainedModel:
    """
    在完整数据集上拟合 pipeline。

    Args:
        spec: build_pipeline() 返回的声明
        frame: load_dataset() 返回的数据集

    Returns:
        TrainedModel

    Raises:
        TrainingError: 数据集为空、标签不兼容或训练器抛出异常
    """
    schema = spec.schema
    if len(frame) == 0:
        raise TrainingError("Dataset has no data rows; nothing to train on")

    missing = [name for name in schema.column_names if name not in frame.columns]
    if missing:
        raise TrainingError(f"Dataset is missing column(s) {missing}")

    try:
        estimator = materialize(spec)
    except PipelineDefinitionError as e:
        raise TrainingError(f"Invalid pipeline: {e}") from e

    labels = _encode_labels(frame[schema.label_name].to_numpy())
    label_values = np.unique(labels)
    if len(label_values) < 2:
        raise TrainingError(f"Need at least 2 distinct label values to train a classifier, found {len(label_values)}")

    features = frame[schema.feature_names]
    options = spec.trainer_options
    logger.info(
        f"Training LGBMClassifier: {len(frame)} rows, {schema.feature_count} features, "
        f"{len(label_values)} classes, {options.iterations} iterations"
    )

    try:
        estimator.fit(features, labels)
        predicted = np.asarray(estimator.predict(features))
    except Exception as e:
        raise TrainingError(f"Training failed: {e}") from e

    metrics = {"train_accuracy": float(np.mean(predicted == labels))}
    logger.info(f"Training metrics: {metrics}")

    return TrainedModel(estimator=estimator, spec=spec, metrics=metrics)


def log_to_mlflow(
    trained: TrainedModel,
    experiment_name: str | None = None,
    run_name: str | None = None,
    model_path: str | None = None,
) -> None:
    """
    将训练参数、指标和导出的模型记录到 MLflow。

    MLflow 未安装时跳过；记录失败只输出警告。
    """
    try:
        import mlflow
    except ImportError:
        logger.info("MLflow not installed, skipping MLflow logging")
        return

    from ..config import MLFLOW_TRACKING_URI

    params = {
        **trained.spec.trainer_options.to_dict(),
        "model_type": "lightgbm",
        "num_features": trained.schema.feature_count,
        "num_classes": len(trained.classes),
    }

    try:
        if MLFLOW_TRACKING_URI:
            mlflow.set_tracking_uri(MLFLOW_TRACKING_URI)
        if experiment_name:
            mlflow.set_experiment(experiment_name)

        with mlflow.start_run(run_name=run_name):
            mlflow.log_params({k: str(v) for k, v in params.items()})
            mlflow.log_metrics(trained.metrics)
            if model_path and os.path.exists(model_path):
                mlflow.log_artifact(model_path, artifact_path="model")

        logger.info(f"MLflow: logged to experiment='{experiment_name}', run='{run_name}'")
    except Exception as e:
        logger.warning(f"Failed to log to MLflow: {e}")
