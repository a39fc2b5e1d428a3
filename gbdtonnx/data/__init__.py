"""
数据模块

提供：
- Schema 发现（按列数生成列描述）
- CSV 数据集加载
"""

from .dataset import load_dataset, summarize_dataset
from .schema import ColumnSpec, Schema, build_columns, count_header_fields, discover_schema

__all__ = [
    "ColumnSpec",
    "Schema",
    "build_columns",
    "count_header_fields",
    "discover_schema",
    "load_dataset",
    "summarize_dataset",
]
