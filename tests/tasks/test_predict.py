"""
预测任务测试
"""

import numpy as np
import pytest

try:
    import onnxmltools  # noqa: F401
    import onnxruntime  # noqa: F401
    import skl2onnx  # noqa: F401

    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from gbdtonnx.data.schema import build_columns
from gbdtonnx.errors import InferenceError, ModelLoadError
from gbdtonnx.tasks.predict import (
    build_inference_request,
    decode_predicted_label,
    demo_feature_vector,
    format_result,
)

requires_onnx = pytest.mark.skipif(not ONNX_AVAILABLE, reason="ONNX toolchain not available")


def test_demo_feature_vector():
    assert demo_feature_vector(4) == [4.0, 5.0, 6.0, 7.0]
    assert demo_feature_vector(0) == []


def test_request_has_one_tensor_per_feature_plus_label():
    request = build_inference_request(build_columns(5))

    assert list(request) == ["Feature0", "Feature1", "Feature2", "Feature3", "Label"]
    for name, value in zip(["Feature0", "Feature1", "Feature2", "Feature3"], [4.0, 5.0, 6.0, 7.0]):
        assert request[name].shape == (1, 1)
        assert request[name].dtype == np.float32
        assert request[name][0, 0] == value
    assert request["Label"][0, 0] == 0.0


def test_request_with_explicit_features():
    request = build_inference_request(build_columns(3), features=[1.5, -2.0], label_placeholder=9.0)

    assert request["Feature0"][0, 0] == 1.5
    assert request["Feature1"][0, 0] == -2.0
    assert request["Label"][0, 0] == 9.0


def test_request_length_mismatch():
    with pytest.raises(InferenceError, match="Expected 4 feature value"):
        build_inference_request(build_columns(5), features=[1.0, 2.0])


def test_format_result():
    outputs = [
        ("label", np.array([2], dtype=np.int64)),
        ("probabilities", np.array([[0.25, 0.75]], dtype=np.float32)),
        ("output_probability", [{0: 0.25, 1: 0.75}]),
    ]

    assert format_result(outputs) == [
        "Name: label",
        "Values: 2",
        "Name: probabilities",
        "Values: 0.25, 0.75",
        "Name: output_probability",
        "Non-tensor type",
    ]


def test_decode_predicted_label():
    outputs = [("label", np.array([7], dtype=np.int64))]

    assert decode_predicted_label(outputs, [3, 7, 9]) == (1, 7)
    assert decode_predicted_label(outputs, None) == (None, 7)
    assert decode_predicted_label([("probabilities", np.zeros((1, 3)))], [3, 7, 9]) == (None, None)


def test_decode_unseen_label():
    with pytest.raises(InferenceError, match="not one of the trained label values"):
        decode_predicted_label([("label", np.array([5], dtype=np.int64))], [3, 7, 9])


def test_request_with_non_numeric_features():
    with pytest.raises(InferenceError, match="must be numeric"):
        build_inference_request(build_columns(3), features=["a", "b"])


def test_request_with_non_numeric_placeholder():
    with pytest.raises(InferenceError, match="Label placeholder"):
        build_inference_request(build_columns(3), features=[1.0, 2.0], label_placeholder="x")


def test_missing_model(temp_dir):
    from gbdtonnx.tasks.predict import run_inference

    with pytest.raises((ModelLoadError, ImportError)):
        run_inference(temp_dir / "missing.onnx", schema=build_columns(5))


@requires_onnx
def test_round_trip(sample_csv, fast_options, temp_dir):
    from gbdtonnx.tasks.export import train_and_export
    from gbdtonnx.tasks.predict import run_inference

    onnx_path = temp_dir / "model.onnx"
    train_and_export(sample_csv, onnx_path, options=fast_options)

    report = run_inference(onnx_path)

    assert report.predicted_label in (3, 7, 9)
    assert report.predicted_key in (0, 1, 2)
    assert report.lines[0] == "Name: label"
    assert report.lines[1].startswith("Values: ")
    assert "Name: probabilities" in report.lines
    assert report.output("probabilities").shape == (1, 3)


@requires_onnx
def test_round_trip_recovers_cluster_label(sample_csv, fast_options, temp_dir):
    from gbdtonnx.tasks.export import train_and_export
    from gbdtonnx.tasks.predict import run_inference

    onnx_path = temp_dir / "model.onnx"
    trained = train_and_export(sample_csv, onnx_path, options=fast_options)

    report = run_inference(onnx_path, schema=trained.schema, features=[20.0, 20.0, 20.0, 20.0])

    assert report.predicted_label == 9


@requires_onnx
def test_zipmap_outputs_are_non_tensor(sample_csv, fast_options, temp_dir):
    from gbdtonnx.tasks.export import train_and_export
    from gbdtonnx.tasks.predict import run_inference

    onnx_path = temp_dir / "model.onnx"
    train_and_export(sample_csv, onnx_path, options=fast_options, zipmap=True)

    report = run_inference(onnx_path)

    assert "Non-tensor type" in report.lines
    assert report.predicted_label in (3, 7, 9)
    with pytest.raises(KeyError):
        report.output("probabilities")
