"""
Schema 发现

只读取 CSV 的首行并统计字段数。列名按位置生成（Feature0, Feature1, ...），
表头中的文本本身不被使用：最后一列始终是标签列。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import logger
from ..errors import MalformedHeaderError

DEFAULT_DELIMITER = ","
DEFAULT_FEATURE_PREFIX = "Feature"
DEFAULT_LABEL_NAME = "Label"
NUMERIC_DTYPE = "float32"


@dataclass(frozen=True)
class ColumnSpec:
    """列描述：生成的列名、数值类型和从 0 开始的位置。"""

    name: str
    dtype: str
    index: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "dtype": self.dtype, "index": self.index}


@dataclass(frozen=True)
class Schema:
    """
    从 CSV 表头推导出的列结构。

    Attributes:
        features: 按位置排序的特征列
        label: 标签列（总是最后一列）
        delimiter: 字段分隔符
    """

    features: tuple[ColumnSpec, ...]
    label: ColumnSpec
    delimiter: str = DEFAULT_DELIMITER

    @property
    def feature_count(self) -> int:
        return len(self.features)

    @property
    def column_count(self) -> int:
        return len(self.features) + 1

    @property
    def feature_names(self) -> list[str]:
        return [col.name for col in self.features]

    @property
    def label_name(self) -> str:
        return self.label.name

    @property
    def column_names(self) -> list[str]:
        return self.feature_names + [self.label.name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "features": [col.to_dict() for col in self.features],
            "label": self.label.to_dict(),
            "delimiter": self.delimiter,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        return cls(
            features=tuple(ColumnSpec(**col) for col in data["features"]),
            label=ColumnSpec(**data["label"]),
            delimiter=data.get("delimiter", DEFAULT_DELIMITER),
        )


def count_header_fields(csv_path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> int:
    """
    读取 CSV 首行并返回字段数。

    Args:
        csv_path: CSV 文件路径
        delimiter: 字段分隔符

    Returns:
        首行的字段数

    Raises:
        FileNotFoundError: 文件不存在（在任何读取之前检查）
        MalformedHeaderError: 首行为空或字段数少于 2
    """
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, encoding="utf-8-sig", newline="") as f:
        first_line = f.readline()

    first_line = first_line.rstrip("\r\n")
    if not first_line.strip():
        raise MalformedHeaderError(f"Header line of {csv_path} is empty")

    field_count = len(first_line.split(delimiter))
    if field_count < 2:
        raise MalformedHeaderError(
            f"Header line of {csv_path} has {field_count} field(s); "
            f"at least one feature and one label column are required"
        )
    return field_count


def build_columns(
    column_count: int,
    feature_prefix: str = DEFAULT_FEATURE_PREFIX,
    label_name: str = DEFAULT_LABEL_NAME,
    delimiter: str = DEFAULT_DELIMITER,
) -> Schema:
    """
    根据列数生成列描述。

    前 column_count - 1 列为特征列 ``{feature_prefix}{i}``，最后一列为标签列。

    Args:
        column_count: 总列数（特征 + 标签）
        feature_prefix: 特征列名前缀
        label_name: 标签列名
        delimiter: 字段分隔符

    Returns:
        Schema
    """
    if column_count < 2:
        raise MalformedHeaderError(f"column_count must be >= 2, got {column_count}")

    features = tuple(ColumnSpec(f"{feature_prefix}{i}", NUMERIC_DTYPE, i) for i in range(column_count - 1))
    if label_name in {col.name for col in features}:
        raise MalformedHeaderError(f"Label name '{label_name}' collides with a generated feature name")

    label = ColumnSpec(label_name, NUMERIC_DTYPE, column_count - 1)
    return Schema(features=features, label=label, delimiter=delimiter)


def discover_schema(
    csv_path: str | Path,
    delimiter: str = DEFAULT_DELIMITER,
    feature_prefix: str = DEFAULT_FEATURE_PREFIX,
    label_name: str = DEFAULT_LABEL_NAME,
) -> Schema:
    """从 CSV 表头发现 Schema（只使用字段数）。"""
    column_count = count_header_fields(csv_path, delimiter=delimiter)
    schema = build_columns(column_count, feature_prefix=feature_prefix, label_name=label_name, delimiter=delimiter)
    logger.info(f"Discovered {schema.feature_count} feature column(s) and label '{schema.label_name}' in {csv_path}")
    return schema
