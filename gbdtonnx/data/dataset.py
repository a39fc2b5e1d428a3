"""
CSV 数据集加载

所有列都按 float32 读取；列名来自 Schema（按位置生成），表头文本被丢弃。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..config import logger
from ..errors import DatasetLoadError
from .schema import Schema


def _check_row_widths(csv_path: Path, schema: Schema) -> None:
    """
    逐行检查字段数与表头一致。

    pandas 在所有数据行都多出字段时会把多出的首列当作索引，
    因此字段数在交给 read_csv 之前按表头同样的规则单独检查。
    """
    bad_rows = []
    with open(csv_path, encoding="utf-8-sig", newline="") as f:
        next(f, None)
        for line_no, line in enumerate(f, start=2):
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            field_count = len(line.split(schema.delimiter))
            if field_count != schema.column_count:
                bad_rows.append(f"line {line_no} has {field_count}")

    if bad_rows:
        shown = ", ".join(bad_rows[:10])
        raise DatasetLoadError(
            f"{csv_path}: {len(bad_rows)} data row(s) have the wrong number of fields "
            f"(expected {schema.column_count} per row): {shown}"
        )


def load_dataset(csv_path: str | Path, schema: Schema) -> pd.DataFrame:
    """
    按 Schema 加载 CSV 数据集。

    Args:
        csv_path: CSV 文件路径
        schema: discover_schema() 返回的 Schema

    Returns:
        列名为 schema.column_names、类型为 float32 的 DataFrame
        （只有表头时为空表）

    Raises:
        FileNotFoundError: 文件不存在
        DatasetLoadError: 某行字段数与表头不一致，或包含非数值字段
    """
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    _check_row_widths(csv_path, schema)

    try:
        frame = pd.read_csv(
            csv_path,
            sep=schema.delimiter,
            header=0,
            index_col=False,
            dtype=np.float32,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError as e:
        raise DatasetLoadError(f"{csv_path} is empty: {e}") from e
    except pd.errors.ParserError as e:
        raise DatasetLoadError(f"Malformed row in {csv_path}: {e}") from e
    except ValueError as e:
        raise DatasetLoadError(f"Non-numeric value in {csv_path}: {e}") from e

    if frame.shape[1] != schema.column_count:
        raise DatasetLoadError(f"{csv_path} has {frame.shape[1]} columns, schema expects {schema.column_count}")

    frame.columns = schema.column_names

    # 空字段（如 "1,,3"）会被读成 NaN
    incomplete = frame.isna().any(axis=1).to_numpy()
    if incomplete.any():
        rows = (np.flatnonzero(incomplete) + 1).tolist()
        shown = ", ".join(str(r) for r in rows[:10])
        raise DatasetLoadError(
            f"{csv_path}: {len(rows)} data row(s) have missing fields (expected {schema.column_count} per row): rows {shown}"
        )

    logger.info(f"Loaded {len(frame)} row(s) x {frame.shape[1]} column(s) from {csv_path}")
    return frame


def summarize_dataset(frame: pd.DataFrame, schema: Schema) -> dict[str, Any]:
    """
    汇总数据集统计信息（行数、特征范围、标签分布）。

    Args:
        frame: load_dataset() 返回的 DataFrame
        schema: 对应的 Schema

    Returns:
        统计信息字典
    """
    summary: dict[str, Any] = {
        "num_rows": int(len(frame)),
        "num_features": schema.feature_count,
        "features": {},
        "label_counts": {},
    }

    if len(frame) == 0:
        return summary

    for name in schema.feature_names:
        column = frame[name]
        summary["features"][name] = {
            "min": float(column.min()),
            "max": float(column.max()),
            "mean": float(column.mean()),
        }

    counts = frame[schema.label_name].value_counts().sort_index()
    summary["label_counts"] = {float(k): int(v) for k, v in counts.items()}
    return summary
