"""
库接口使用示例

展示如何不经过 CLI 直接使用 gbdtonnx：
1. 生成示例 CSV
2. 分阶段训练、导出、推理
3. 使用 Orchestrator 一次执行全部阶段
"""

from pathlib import Path

import numpy as np

from gbdtonnx.data import discover_schema, load_dataset
from gbdtonnx.pipeline import PipelineConfig, TrainerOptions, build_pipeline
from gbdtonnx.pipeline.orchestrator import PipelineOrchestrator
from gbdtonnx.tasks import export_model, fit_pipeline, run_inference


def write_sample_csv(path: Path, rows_per_class: int = 50) -> Path:
    """三个类别（标签 3 / 7 / 9），四个特征。"""
    rng = np.random.default_rng(0)
    lines = ["f1,f2,f3,f4,label"]
    for index, label in enumerate((3, 7, 9)):
        points = index * 10.0 + rng.normal(0.0, 1.0, size=(rows_per_class, 4))
        lines.extend(",".join(f"{v:.4f}" for v in point) + f",{label}" for point in points)
    path.write_text("\n".join(lines) + "\n")
    return path


def example_stages(workdir: Path):
    """示例 1: 分阶段执行"""
    print("=" * 80)
    print("示例 1: 分阶段执行")
    print("=" * 80)

    csv_path = write_sample_csv(workdir / "record.csv")

    schema = discover_schema(csv_path)
    print(f"\nSchema: features={schema.feature_names}, label={schema.label_name}")

    frame = load_dataset(csv_path, schema)
    spec = build_pipeline(schema, TrainerOptions(iterations=50))
    trained = fit_pipeline(spec, frame)
    print(f"标签值（按键顺序）: {trained.classes}")
    print(f"训练指标: {trained.metrics}")

    onnx_path = export_model(trained, workdir / "model.onnx")

    report = run_inference(onnx_path, features=[20.0, 20.0, 20.0, 20.0])
    print(f"\n预测标签: {report.predicted_label}")
    for line in report.lines:
        print(line)


def example_orchestrator(workdir: Path):
    """示例 2: 使用 Orchestrator"""
    print("=" * 80)
    print("示例 2: 使用 Orchestrator")
    print("=" * 80)

    write_sample_csv(workdir / "record.csv")
    config_path = Path(__file__).parent / "pipeline.yaml"
    config = PipelineConfig.load(config_path)
    config.data.csv_path = workdir / "record.csv"
    config.export.onnx_path = workdir / "model.onnx"

    result = PipelineOrchestrator(config).run()
    for stage in result.results:
        print(stage.describe())


if __name__ == "__main__":
    import tempfile

    with tempfile.TemporaryDirectory() as tmp:
        example_stages(Path(tmp))
        example_orchestrator(Path(tmp))
