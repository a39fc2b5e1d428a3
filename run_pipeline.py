#!/usr/bin/env python
"""gbdtonnx — one-shot runner.

Trains a multiclass LightGBM pipeline on ``record.csv``, exports it to
``model.onnx`` and runs a single demonstration prediction against the export.

Both files are looked up in the working directory, or three directories up
when running under a debugger.

Usage:
    python run_pipeline.py
    python run_pipeline.py --csv-name other.csv --features 1,2,3,4
"""

from __future__ import annotations

import argparse
import sys

from gbdtonnx.config import DEFAULT_CSV_NAME, DEFAULT_MODEL_NAME, logger, resolve_default_paths
from gbdtonnx.pipeline.config import DataSection, ExportSection, PipelineConfig
from gbdtonnx.pipeline.orchestrator import PipelineOrchestrator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train, export and query a GBDT classifier via ONNX")
    parser.add_argument("--csv-name", default=DEFAULT_CSV_NAME, help="CSV file name (default: %(default)s)")
    parser.add_argument("--model-name", default=DEFAULT_MODEL_NAME, help="ONNX file name (default: %(default)s)")
    parser.add_argument("--features", default=None, help="Comma-separated feature vector for the prediction")
    return parser.parse_args(argv)


def parse_features(features: str | None) -> list[float] | None:
    """解析 '1.0,2.0,3.0' 格式的特征向量；格式错误时抛出 ValueError。"""
    if not features:
        return None
    try:
        return [float(v) for v in features.split(",")]
    except ValueError as e:
        raise ValueError(f"Invalid features format: {features}. Expected format: '1.0,2.0,3.0'") from e


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        features = parse_features(args.features)
    except ValueError as e:
        logger.error(str(e))
        return 1

    csv_path, onnx_path = resolve_default_paths(args.csv_name, args.model_name)
    config = PipelineConfig(
        data=DataSection(csv_path=csv_path),
        export=ExportSection(onnx_path=onnx_path),
    )

    result = PipelineOrchestrator(config).run(features=features)
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
