"""
gbdtonnx CLI

使用 Typer 实现命令行接口。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from .config import logger
from .errors import GbdtOnnxError
from .pipeline.config import PipelineConfig
from .pipeline.orchestrator import PipelineOrchestrator, PipelineRun
from .tasks import inspect_task

app = typer.Typer(help="gbdtonnx: CSV → 梯度提升树多分类 → ONNX → ONNX Runtime 推理")

ConfigOption = Annotated[Optional[str], typer.Option("-c", "--config", help="Pipeline 配置文件路径（pipeline.yaml）")]
CsvOption = Annotated[Optional[str], typer.Option("--csv", help="CSV 文件路径（覆盖配置）")]
ModelOption = Annotated[Optional[str], typer.Option("-m", "--model", help="ONNX 模型路径（覆盖配置）")]
FeaturesOption = Annotated[Optional[str], typer.Option("--features", help="推理用特征向量，格式：'1.0,2.0,3.0'")]


def _parse_features(features: str | None) -> list[float] | None:
    if not features:
        return None
    try:
        return [float(v) for v in features.split(",")]
    except ValueError:
        logger.error(f"Invalid features format: {features}. Expected format: '1.0,2.0,3.0'")
        raise typer.Exit(1)


def _load_config(pipeline_config: str | None, csv_path: str | None, model_path: str | None) -> PipelineConfig:
    try:
        config = PipelineConfig.load(pipeline_config) if pipeline_config else PipelineConfig()
    except (GbdtOnnxError, OSError) as e:
        logger.error(f"Cannot load pipeline config: {e}")
        raise typer.Exit(1)

    if csv_path:
        config.data.csv_path = Path(csv_path)
    if model_path:
        config.export.onnx_path = Path(model_path)
    return config


def _finish(result: PipelineRun) -> None:
    if not result.ok:
        failure = result.first_failure
        if failure is not None:
            logger.error(f"Failed: {failure.describe()}")
        raise typer.Exit(1)


@app.command()
def run(
    pipeline_config: ConfigOption = None,
    csv_path: CsvOption = None,
    model_path: ModelOption = None,
    features: FeaturesOption = None,
) -> None:
    """训练、导出并用导出的模型执行一次推理。

    示例:
        gbdtonnx run --csv record.csv -m model.onnx --features 4,5,6,7
    """
    config = _load_config(pipeline_config, csv_path, model_path)
    parsed = _parse_features(features)
    _finish(PipelineOrchestrator(config).run(features=parsed))


@app.command()
def train(
    pipeline_config: ConfigOption = None,
    csv_path: CsvOption = None,
    model_path: ModelOption = None,
) -> None:
    """训练并导出 ONNX 模型。

    示例:
        gbdtonnx train -c pipeline.yaml
    """
    config = _load_config(pipeline_config, csv_path, model_path)
    _finish(PipelineOrchestrator(config).train())


@app.command()
def predict(
    model_path: ModelOption = None,
    features: FeaturesOption = None,
    pipeline_config: ConfigOption = None,
) -> None:
    """加载 ONNX 模型并执行一次推理。

    示例:
        gbdtonnx predict -m model.onnx --features 4,5,6,7
    """
    config = _load_config(pipeline_config, None, model_path)
    parsed = _parse_features(features)
    _finish(PipelineOrchestrator(config).predict(features=parsed))


@app.command()
def inspect(
    csv_path: CsvOption = None,
    pipeline_config: ConfigOption = None,
    output_path: Annotated[Optional[str], typer.Option("-o", "--output", help="输出 JSON 文件路径")] = None,
    inspect_data: Annotated[bool, typer.Option("--inspect-data/--no-inspect-data", help="是否检查数据")] = True,
) -> None:
    """检查 CSV 的 schema 和数据统计。

    示例:
        gbdtonnx inspect --csv record.csv -o inspection.json
    """
    config = _load_config(pipeline_config, csv_path, None)
    try:
        results = inspect_task(
            config.csv_path,
            output_path=output_path,
            delimiter=config.data.delimiter,
            feature_prefix=config.data.feature_prefix,
            label_name=config.data.label_name,
            inspect_data=inspect_data,
            options=config.trainer,
        )
    except (GbdtOnnxError, OSError) as e:
        logger.error(f"Inspect failed: {e}")
        raise typer.Exit(1)

    logger.info(json.dumps(results, indent=2))


def main():
    """CLI 入口点。"""
    app()


if __name__ == "__main__":
    main()
