"""
ONNX 推理测试

测试 ONNXPredictor 的加载、输入检查和会话生命周期。
"""

import numpy as np
import pytest

try:
    import onnxmltools  # noqa: F401
    import onnxruntime  # noqa: F401
    import skl2onnx  # noqa: F401

    from gbdtonnx.serve import ONNXPredictor

    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from gbdtonnx.errors import InferenceError, ModelLoadError

pytestmark = pytest.mark.skipif(not ONNX_AVAILABLE, reason="ONNX toolchain not available")


@pytest.fixture
def onnx_model_path(sample_csv, fast_options, temp_dir):
    """训练并导出 ONNX 模型。"""
    from gbdtonnx.tasks.export import train_and_export

    onnx_path = temp_dir / "test_model.onnx"
    train_and_export(sample_csv, onnx_path, options=fast_options)
    return onnx_path


def _request(value=4.0, with_label=True):
    feeds = {f"Feature{i}": np.array([[value + i]], dtype=np.float32) for i in range(4)}
    if with_label:
        feeds["Label"] = np.array([[0.0]], dtype=np.float32)
    return feeds


def test_load_and_predict(onnx_model_path):
    predictor = ONNXPredictor(onnx_model_path)

    assert predictor.input_names == ["Feature0", "Feature1", "Feature2", "Feature3"]
    assert predictor.label_classes == [3, 7, 9]
    assert predictor.schema.feature_count == 4

    outputs = predictor.run(_request())
    names = [name for name, _ in outputs]
    assert names == predictor.output_names
    assert "label" in names


def test_label_placeholder_is_ignored(onnx_model_path):
    predictor = ONNXPredictor(onnx_model_path)

    with_label = dict(predictor.run(_request(with_label=True)))
    without_label = dict(predictor.run(_request(with_label=False)))

    np.testing.assert_array_equal(with_label["label"], without_label["label"])


def test_missing_input(onnx_model_path):
    predictor = ONNXPredictor(onnx_model_path)
    feeds = _request()
    del feeds["Feature2"]

    with pytest.raises(InferenceError, match="Feature2"):
        predictor.run(feeds)


def test_model_info(onnx_model_path):
    info = ONNXPredictor(onnx_model_path).get_model_info()

    assert [i["name"] for i in info["inputs"]] == ["Feature0", "Feature1", "Feature2", "Feature3"]
    assert info["num_features"] == 4
    assert info["label_classes"] == [3, 7, 9]


def test_closed_session(onnx_model_path):
    with ONNXPredictor(onnx_model_path) as predictor:
        predictor.run(_request())

    with pytest.raises(InferenceError, match="closed"):
        predictor.run(_request())


def test_missing_file(temp_dir):
    with pytest.raises(ModelLoadError, match="not found"):
        ONNXPredictor(temp_dir / "missing.onnx")


def test_invalid_file(temp_dir):
    garbage = temp_dir / "garbage.onnx"
    garbage.write_bytes(b"this is not an onnx graph")

    with pytest.raises(ModelLoadError):
        ONNXPredictor(garbage)
