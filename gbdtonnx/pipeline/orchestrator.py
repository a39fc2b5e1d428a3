"""
Pipeline Orchestrator

统一入口，严格按顺序执行各阶段：
Schema 发现 → 数据加载 → Pipeline 构建 → 训练与导出 → 推理。

每个阶段返回 StageResult；异常在阶段边界被捕获并记录，
之后依赖它的阶段被标记为跳过。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from ..config import logger
from ..data import discover_schema, load_dataset
from ..errors import GbdtOnnxError, StageResult
from ..pipeline.builder import build_pipeline
from ..tasks.export import export_model
from ..tasks.predict import run_inference
from ..tasks.train import fit_pipeline, log_to_mlflow
from .config import PipelineConfig

STAGE_SCHEMA = "schema_discovery"
STAGE_DATASET = "dataset_load"
STAGE_PIPELINE = "pipeline_build"
STAGE_EXPORT = "model_export"
STAGE_INFERENCE = "inference"

STAGES = (STAGE_SCHEMA, STAGE_DATASET, STAGE_PIPELINE, STAGE_EXPORT, STAGE_INFERENCE)

# 导出后立即读取同一个文件：并发调用者之间互斥
_EXPORT_LOCK = threading.Lock()


@dataclass
class PipelineRun:
    """一次完整运行中各阶段的结果。"""

    results: list[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.results) and all(r.ok for r in self.results)

    @property
    def first_failure(self) -> StageResult | None:
        for result in self.results:
            if not result.ok and not result.skipped:
                return result
        return None

    def get(self, stage: str) -> StageResult | None:
        for result in self.results:
            if result.stage == stage:
                return result
        return None

    def value(self, stage: str) -> Any:
        result = self.get(stage)
        return result.value if result is not None and result.ok else None


class PipelineOrchestrator:
    """
    Pipeline 编排器。

    典型使用流程：
    1. PipelineOrchestrator.from_yaml("pipeline.yaml") 或直接传入 PipelineConfig
    2. run(): 执行全部阶段，返回 PipelineRun
    3. 也可以只执行 train() 或 predict()
    """

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    @classmethod
    def from_yaml(cls, pipeline_config_path: str | Path) -> PipelineOrchestrator:
        return cls(PipelineConfig.load(pipeline_config_path))

    def _stage(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> StageResult:
        """在阶段边界执行 fn，把失败转换为 Err 结果（未归类的异常记为 UnknownError）。"""
        try:
            value = fn(*args, **kwargs)
        except (GbdtOnnxError, OSError) as e:
            result = StageResult.failure(name, e)
            logger.error(f"Stage '{name}' failed with {result.error_kind.value}: {e}")
            return result
        except Exception as e:
            result = StageResult.failure(name, e)
            logger.error(f"Stage '{name}' failed with unexpected {type(e).__name__}: {e}", exc_info=True)
            return result
        return StageResult.success(name, value)

    def _run_stages(self, stages: Sequence[tuple[str, Callable[[dict[str, Any]], Any]]]) -> PipelineRun:
        run = PipelineRun()
        artifacts: dict[str, Any] = {}
        failed: StageResult | None = None

        for name, fn in stages:
            if failed is not None:
                run.results.append(StageResult.skip(name, f"'{failed.stage}' failed"))
                continue
            result = self._stage(name, fn, artifacts)
            run.results.append(result)
            if result.ok:
                artifacts[name] = result.value
            else:
                failed = result

        for result in run.results:
            logger.info(result.describe())
        return run

    # 各阶段

    def _discover(self, artifacts: dict[str, Any]):
        data = self.config.data
        return discover_schema(
            self.config.csv_path,
            delimiter=data.delimiter,
            feature_prefix=data.feature_prefix,
            label_name=data.label_name,
        )

    def _load(self, artifacts: dict[str, Any]):
        return load_dataset(self.config.csv_path, artifacts[STAGE_SCHEMA])

    def _build(self, artifacts: dict[str, Any]):
        return build_pipeline(artifacts[STAGE_SCHEMA], self.config.trainer)

    def _export(self, artifacts: dict[str, Any]):
        export = self.config.export
        trained = fit_pipeline(artifacts[STAGE_PIPELINE], artifacts[STAGE_DATASET])
        export_model(
            trained,
            self.config.onnx_path,
            target_opset=export.target_opset,
            zipmap=export.zipmap,
            write_sidecar=export.write_sidecar,
        )
        if self.config.tracking.mlflow:
            log_to_mlflow(
                trained,
                experiment_name=self.config.tracking.experiment_name,
                model_path=str(self.config.onnx_path),
            )
        return trained

    def _infer(self, artifacts: dict[str, Any], features: Sequence[float] | None = None):
        inference = self.config.inference
        return run_inference(
            self.config.onnx_path,
            schema=artifacts.get(STAGE_SCHEMA),
            features=features if features is not None else inference.features,
            label_placeholder=inference.label_placeholder,
        )

    # 入口

    def train(self) -> PipelineRun:
        """执行 Schema 发现 → 数据加载 → Pipeline 构建 → 训练与导出。"""
        with _EXPORT_LOCK:
            return self._run_stages(
                [
                    (STAGE_SCHEMA, self._discover),
                    (STAGE_DATASET, self._load),
                    (STAGE_PIPELINE, self._build),
                    (STAGE_EXPORT, self._export),
                ]
            )

    def predict(self, features: Sequence[float] | None = None) -> PipelineRun:
        """只执行推理阶段（使用模型中嵌入的 Schema）。"""
        with _EXPORT_LOCK:
            return self._run_stages([(STAGE_INFERENCE, lambda artifacts: self._infer(artifacts, features))])

    def run(self, features: Sequence[float] | None = None) -> PipelineRun:
        """按顺序执行全部阶段。"""
        logger.info("=" * 80)
        logger.info(f"Pipeline run: {self.config.csv_path} -> {self.config.onnx_path}")
        logger.info("=" * 80)

        with _EXPORT_LOCK:
            return self._run_stages(
                [
                    (STAGE_SCHEMA, self._discover),
                    (STAGE_DATASET, self._load),
                    (STAGE_PIPELINE, self._build),
                    (STAGE_EXPORT, self._export),
                    (STAGE_INFERENCE, lambda artifacts: self._infer(artifacts, features)),
                ]
            )
