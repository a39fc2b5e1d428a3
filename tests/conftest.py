"""
pytest 配置和共享 fixtures
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path

# 添加项目根目录到路径（以便 conftest 可以导入项目模块）
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
os.environ["PYTHONPATH"] = str(project_root) + os.pathsep + os.environ.get("PYTHONPATH", "")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

# 三个类别，标签值不连续，用于验证键 → 值解码
LABEL_VALUES = (3, 7, 9)
NUM_FEATURES = 4


def _write_csv(path, header, rows, delimiter=","):
    lines = [delimiter.join(header)]
    for row in rows:
        lines.append(delimiter.join(str(v) for v in row))
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    return Path(path)


@pytest.fixture
def temp_dir():
    """创建临时目录。"""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def csv_factory(temp_dir):
    """返回一个写 CSV 文件的函数：csv_factory(name, header, rows, delimiter=",")。"""

    def factory(name, header, rows, delimiter=","):
        return _write_csv(temp_dir / name, header, rows, delimiter=delimiter)

    return factory


@pytest.fixture
def sample_rows():
    """三个分离良好的簇，每类 30 行，4 个特征。"""
    rng = np.random.default_rng(0)
    rows = []
    for cls_index, label in enumerate(LABEL_VALUES):
        centers = np.full(NUM_FEATURES, cls_index * 10.0)
        points = centers + rng.normal(0.0, 1.0, size=(30, NUM_FEATURES))
        for point in points:
            rows.append([round(float(v), 4) for v in point] + [label])
    return rows


@pytest.fixture
def sample_csv(csv_factory, sample_rows):
    """表头为 f1,f2,f3,f4,label 的训练数据。"""
    return csv_factory("record.csv", ["f1", "f2", "f3", "f4", "label"], sample_rows)


@pytest.fixture
def header_only_csv(csv_factory):
    return csv_factory("header_only.csv", ["f1", "f2", "f3", "f4", "label"], [])


@pytest.fixture
def fast_options():
    """减少迭代次数以加快测试。"""
    from gbdtonnx.pipeline.builder import TrainerOptions

    return TrainerOptions(iterations=20)
