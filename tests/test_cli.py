"""
CLI 测试
"""

import json

import pytest
import yaml
from typer.testing import CliRunner

try:
    import onnxmltools  # noqa: F401
    import onnxruntime  # noqa: F401
    import skl2onnx  # noqa: F401

    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from gbdtonnx.cli import app

runner = CliRunner()
requires_onnx = pytest.mark.skipif(not ONNX_AVAILABLE, reason="ONNX toolchain not available")


@pytest.fixture
def pipeline_yaml(sample_csv, temp_dir):
    config_path = temp_dir / "pipeline.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "data": {"csv_path": sample_csv.name},
                "model": {"name": "lightgbm_multiclass", "params": {"iterations": 20}},
                "export": {"onnx_path": "model.onnx"},
            }
        )
    )
    return config_path


@requires_onnx
def test_run_command(pipeline_yaml, temp_dir):
    result = runner.invoke(app, ["run", "-c", str(pipeline_yaml), "--features", "4,5,6,7"])

    assert result.exit_code == 0
    assert (temp_dir / "model.onnx").exists()


@requires_onnx
def test_train_then_predict_commands(pipeline_yaml, temp_dir):
    model_path = temp_dir / "other.onnx"

    result = runner.invoke(app, ["train", "-c", str(pipeline_yaml), "-m", str(model_path)])
    assert result.exit_code == 0
    assert model_path.exists()

    result = runner.invoke(app, ["predict", "-m", str(model_path), "--features", "0,0,0,0"])
    assert result.exit_code == 0


def test_run_missing_csv(temp_dir):
    result = runner.invoke(app, ["run", "--csv", str(temp_dir / "missing.csv"), "-m", str(temp_dir / "model.onnx")])

    assert result.exit_code == 1
    assert not (temp_dir / "model.onnx").exists()


def test_missing_config_file(temp_dir):
    result = runner.invoke(app, ["train", "-c", str(temp_dir / "nope.yaml")])

    assert result.exit_code == 1


def test_invalid_features(sample_csv, temp_dir):
    result = runner.invoke(app, ["run", "--csv", str(sample_csv), "--features", "1,two,3"])

    assert result.exit_code == 1


def test_inspect_writes_json(sample_csv, temp_dir):
    output_path = temp_dir / "inspection.json"
    result = runner.invoke(app, ["inspect", "--csv", str(sample_csv), "-o", str(output_path)])

    assert result.exit_code == 0
    inspection = json.loads(output_path.read_text())
    assert inspection["schema"]["label"]["name"] == "Label"
    assert len(inspection["schema"]["features"]) == 4
    assert inspection["data"]["num_rows"] == 90


def test_inspect_without_data(sample_csv, temp_dir):
    output_path = temp_dir / "inspection.json"
    result = runner.invoke(app, ["inspect", "--csv", str(sample_csv), "-o", str(output_path), "--no-inspect-data"])

    assert result.exit_code == 0
    assert "data" not in json.loads(output_path.read_text())
