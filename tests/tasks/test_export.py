"""
ONNX 导出测试

测试：
1. 每个特征列一个命名输入，输出包含标签和概率
2. 嵌入元数据和 JSON 元数据文件
3. 覆盖写出、路径不可写
4. ONNX 预测与 Python 模型一致
"""

import numpy as np
import pytest

try:
    import onnx
    import onnxmltools  # noqa: F401
    import onnxruntime as ort
    import skl2onnx  # noqa: F401

    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from gbdtonnx.data import discover_schema, load_dataset
from gbdtonnx.errors import ModelExportError
from gbdtonnx.metadata import load_model_metadata, read_embedded_metadata, sidecar_path
from gbdtonnx.pipeline.builder import build_pipeline
from gbdtonnx.tasks.train import fit_pipeline

pytestmark = pytest.mark.skipif(not ONNX_AVAILABLE, reason="ONNX toolchain not available")


@pytest.fixture
def trained(sample_csv, fast_options):
    schema = discover_schema(sample_csv)
    frame = load_dataset(sample_csv, schema)
    return fit_pipeline(build_pipeline(schema, fast_options), frame)


def _feeds(frame, schema):
    return {name: frame[[name]].to_numpy(dtype=np.float32) for name in schema.feature_names}


def test_export_creates_valid_model(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx")

    assert onnx_path.exists()
    model = onnx.load(str(onnx_path))
    onnx.checker.check_model(model)

    input_names = [i.name for i in model.graph.input]
    output_names = [o.name for o in model.graph.output]
    assert input_names == ["Feature0", "Feature1", "Feature2", "Feature3"]
    assert "label" in output_names
    assert "probabilities" in output_names


def test_export_embeds_metadata(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx")
    model = onnx.load(str(onnx_path))
    metadata = read_embedded_metadata({p.key: p.value for p in model.metadata_props})

    assert metadata["label_classes"] == [3, 7, 9]
    assert metadata["schema"].feature_names == ["Feature0", "Feature1", "Feature2", "Feature3"]
    assert metadata["trainer_options"]["iterations"] == 20


def test_export_writes_sidecar(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx")
    metadata = load_model_metadata(sidecar_path(onnx_path))

    assert metadata["label_classes"] == [3, 7, 9]
    assert metadata["schema"].label_name == "Label"
    assert "train_accuracy" in metadata["metrics"]


def test_export_without_sidecar(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx", write_sidecar=False)

    assert onnx_path.exists()
    assert not sidecar_path(onnx_path).exists()


def test_export_overwrites_existing_file(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = temp_dir / "model.onnx"
    onnx_path.write_bytes(b"stale")

    export_model(trained, onnx_path)

    onnx.checker.check_model(onnx.load(str(onnx_path)))
    assert not list(temp_dir.glob("model.onnx.*.tmp"))


def test_export_unwritable_path(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    blocker = temp_dir / "not_a_dir.txt"
    blocker.write_text("x")

    with pytest.raises(ModelExportError):
        export_model(trained, blocker / "model.onnx")


def test_onnx_matches_python_model(trained, sample_csv, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx")
    schema = trained.schema
    frame = load_dataset(sample_csv, schema)

    session = ort.InferenceSession(str(onnx_path), providers=["CPUExecutionProvider"])
    onnx_labels, onnx_proba = session.run(None, _feeds(frame, schema))

    agreement = np.mean(onnx_labels.ravel() == trained.predict(frame))
    assert agreement >= 0.95
    np.testing.assert_allclose(onnx_proba.sum(axis=1), 1.0, rtol=1e-4)


def test_graph_outputs_original_label_values(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx")
    session = ort.InferenceSession(str(onnx_path), providers=["CPUExecutionProvider"])

    for value, expected in ((0.0, 3), (10.0, 7), (20.0, 9)):
        feeds = {f"Feature{i}": np.array([[value]], dtype=np.float32) for i in range(4)}
        label, _ = session.run(None, feeds)
        assert label.dtype == np.int64
        assert label.ravel().tolist() == [expected]


def test_sidecar_failure_keeps_existing_model(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = temp_dir / "model.onnx"
    onnx_path.write_bytes(b"previous model")
    # 元数据路径被目录占用，写出失败
    sidecar_path(onnx_path).mkdir()

    with pytest.raises(ModelExportError, match="metadata"):
        export_model(trained, onnx_path)

    assert onnx_path.read_bytes() == b"previous model"


def test_train_and_export_is_repeatable(sample_csv, fast_options, temp_dir):
    from gbdtonnx.tasks.export import train_and_export

    onnx_path = temp_dir / "model.onnx"
    point = {f"Feature{i}": np.array([[10.0]], dtype=np.float32) for i in range(4)}

    train_and_export(sample_csv, onnx_path, options=fast_options)
    first = ort.InferenceSession(str(onnx_path), providers=["CPUExecutionProvider"]).run(None, point)

    train_and_export(sample_csv, onnx_path, options=fast_options)
    second = ort.InferenceSession(str(onnx_path), providers=["CPUExecutionProvider"]).run(None, point)

    np.testing.assert_array_equal(first[0], second[0])
    np.testing.assert_allclose(first[1], second[1])


def test_zipmap_export(trained, temp_dir):
    from gbdtonnx.tasks.export import export_model

    onnx_path = export_model(trained, temp_dir / "model.onnx", zipmap=True)
    model = onnx.load(str(onnx_path))

    assert "output_probability" in [o.name for o in model.graph.output]
