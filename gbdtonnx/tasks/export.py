"""
导出任务

支持：
- 拟合后的 pipeline → ONNX（每个特征列一个命名输入，label 输出为原始标签值）
- ONNX 模型验证
- 在 ONNX 文件中嵌入 schema 和标签键映射
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..config import logger
from ..data import discover_schema, load_dataset
from ..errors import ModelExportError
from ..metadata import build_model_metadata, save_model_metadata, sidecar_path
from ..pipeline.builder import TrainerOptions, build_pipeline
from .train import TrainedModel, fit_pipeline, log_to_mlflow

DEFAULT_TARGET_OPSET = 15
DEFAULT_ML_OPSET = 2

_converter_registered = False


def register_lightgbm_converter() -> None:
    """向 skl2onnx 注册 onnxmltools 提供的 LGBMClassifier 转换器（只注册一次）。"""
    global _converter_registered
    if _converter_registered:
        return

    from lightgbm import LGBMClassifier
    from onnxmltools.convert.lightgbm.operator_converters.LightGbm import convert_lightgbm
    from skl2onnx import update_registered_converter
    from skl2onnx.common.shape_calculator import calculate_linear_classifier_output_shapes

    update_registered_converter(
        LGBMClassifier,
        "LightGbmLGBMClassifier",
        calculate_linear_classifier_output_shapes,
        convert_lightgbm,
        options={"nocl": [True, False], "zipmap": [True, False, "columns"]},
    )
    _converter_registered = True


def convert_to_onnx(
    trained: TrainedModel,
    target_opset: int = DEFAULT_TARGET_OPSET,
    zipmap: bool = False,
):
    """
    将拟合后的 pipeline 转换为 ONNX ModelProto。

    每个特征列对应一个 [None, 1] 的 float 输入，名称与 Schema 中的列名一致。

    Args:
        trained: fit_pipeline() 返回的模型
        target_opset: 主 ONNX opset 版本
        zipmap: 概率输出是否使用 ZipMap（输出为 map 序列而不是张量）

    Returns:
        onnx.ModelProto

    Raises:
        ModelExportError: 转换或验证失败
    """
    import onnx
    from skl2onnx import convert_sklearn
    from skl2onnx.common.data_types import FloatTensorType

    register_lightgbm_converter()

    schema = trained.schema
    initial_types = [(name, FloatTensorType([None, 1])) for name in schema.feature_names]
    classifier = trained.classifier

    logger.info(f"Converting pipeline to ONNX (opset={target_opset}, inputs={len(initial_types)}, zipmap={zipmap})...")
    try:
        onnx_model = convert_sklearn(
            trained.estimator,
            initial_types=initial_types,
            target_opset={"": target_opset, "ai.onnx.ml": DEFAULT_ML_OPSET},
            options={id(classifier): {"zipmap": zipmap}},
        )
    except Exception as e:
        raise ModelExportError(f"ONNX conversion failed: {e}") from e

    props = {p.key: p.value for p in onnx_model.metadata_props}
    props.update(
        build_model_metadata(
            schema=schema,
            label_classes=trained.classes,
            trainer_options=trained.spec.trainer_options.to_dict(),
        )
    )
    onnx.helper.set_model_props(onnx_model, props)

    logger.info("Validating ONNX model...")
    try:
        onnx.checker.check_model(onnx_model)
    except onnx.checker.ValidationError as e:
        raise ModelExportError(f"Exported ONNX graph is invalid: {e}") from e
    logger.info("ONNX model validation passed!")

    return onnx_model


def write_model(onnx_model, output_path: str | Path) -> Path:
    """
    写出 ONNX 文件，覆盖已存在的文件。

    先写入同目录下的临时文件再原子替换，读取方不会看到写了一半的文件。

    Raises:
        ModelExportError: 输出路径不可写
    """
    output_path = Path(output_path)
    payload = onnx_model.SerializeToString()

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=output_path.name + ".", suffix=".tmp", dir=output_path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, output_path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ModelExportError(f"Cannot write ONNX model to {output_path}: {e}") from e

    logger.info(f"ONNX model exported to {output_path} ({len(payload)} bytes)")
    return output_path


def export_model(
    trained: TrainedModel,
    output_path: str | Path,
    target_opset: int = DEFAULT_TARGET_OPSET,
    zipmap: bool = False,
    write_sidecar: bool = True,
) -> Path:
    """
    导出拟合后的 pipeline 为 ONNX 文件。

    JSON 元数据先于 ONNX 文件写出：元数据写入失败时，已有的 ONNX 文件保持不变。

    Args:
        trained: fit_pipeline() 返回的模型
        output_path: 输出 ONNX 文件路径（已存在则覆盖）
        target_opset: ONNX opset 版本
        zipmap: 概率输出是否使用 ZipMap
        write_sidecar: 是否同时写出 JSON 元数据

    Returns:
        输出文件路径

    Raises:
        ModelExportError: 转换失败或路径不可写
    """
    output_path = Path(output_path)
    onnx_model = convert_to_onnx(trained, target_opset=target_opset, zipmap=zipmap)

    if write_sidecar:
        try:
            save_model_metadata(
                sidecar_path(output_path),
                schema=trained.schema,
                label_classes=trained.classes,
                trainer_options=trained.spec.trainer_options.to_dict(),
                metrics=trained.metrics,
                onnx_path=str(output_path),
                target_opset=target_opset,
            )
        except OSError as e:
            raise ModelExportError(f"Cannot write model metadata next to {output_path}: {e}") from e

    output_path = write_model(onnx_model, output_path)

    logger.info("Learning end.")
    return output_path


def train_and_export(
    csv_path: str | Path,
    onnx_path: str | Path,
    options: TrainerOptions | None = None,
    delimiter: str = ",",
    feature_prefix: str = "Feature",
    label_name: str = "Label",
    target_opset: int = DEFAULT_TARGET_OPSET,
    zipmap: bool = False,
    write_sidecar: bool = True,
    track: bool = False,
    experiment_name: str | None = None,
) -> TrainedModel:
    """
    训练 + 导出任务主函数。

    依次执行：Schema 发现 → 数据加载 → pipeline 构建 → 拟合 → ONNX 导出。

    Returns:
        TrainedModel

    Raises:
        FileNotFoundError / MalformedHeaderError / DatasetLoadError /
        PipelineDefinitionError / TrainingError / ModelExportError
    """
    logger.info("=" * 80)
    logger.info("Train & Export Task")
    logger.info("=" * 80)

    schema = discover_schema(csv_path, delimiter=delimiter, feature_prefix=feature_prefix, label_name=label_name)
    frame = load_dataset(csv_path, schema)
    spec = build_pipeline(schema, options)
    trained = fit_pipeline(spec, frame)
    export_model(trained, onnx_path, target_opset=target_opset, zipmap=zipmap, write_sidecar=write_sidecar)

    if track:
        log_to_mlflow(trained, experiment_name=experiment_name, model_path=str(onnx_path))

    return trained
