"""
run_pipeline.py 测试
"""

import pytest

import run_pipeline


def test_parse_features():
    assert run_pipeline.parse_features("1,2.5") == [1.0, 2.5]
    assert run_pipeline.parse_features(None) is None
    assert run_pipeline.parse_features("") is None


def test_parse_features_non_numeric():
    with pytest.raises(ValueError, match="Invalid features format"):
        run_pipeline.parse_features("a,b")


def test_main_with_non_numeric_features(temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)

    assert run_pipeline.main(["--features", "a,b"]) == 1
    assert not (temp_dir / "model.onnx").exists()
