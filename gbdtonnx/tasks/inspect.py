"""
检查任务

支持：
- Schema 检查（列数、生成的列名）
- 数据检查（行数、特征范围、标签分布）
- Pipeline 步骤预览
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..config import logger
from ..data import discover_schema, load_dataset, summarize_dataset
from ..pipeline.builder import TrainerOptions, build_pipeline


def inspect_task(
    csv_path: str | Path,
    output_path: str | Path | None = None,
    delimiter: str = ",",
    feature_prefix: str = "Feature",
    label_name: str = "Label",
    inspect_data: bool = True,
    options: TrainerOptions | None = None,
) -> dict[str, Any]:
    """
    检查任务主函数。

    Args:
        csv_path: CSV 文件路径
        output_path: 输出 JSON 文件路径（可选）
        delimiter: 字段分隔符
        feature_prefix: 特征列名前缀
        label_name: 标签列名
        inspect_data: 是否加载数据并统计
        options: 训练器选项（用于 pipeline 预览）

    Returns:
        检查结果字典
    """
    logger.info("=" * 80)
    logger.info("Inspect Task")
    logger.info("=" * 80)

    schema = discover_schema(csv_path, delimiter=delimiter, feature_prefix=feature_prefix, label_name=label_name)
    spec = build_pipeline(schema, options)

    results: dict[str, Any] = {
        "csv_path": str(csv_path),
        "schema": schema.to_dict(),
        "pipeline": spec.describe(),
        "trainer_options": spec.trainer_options.to_dict(),
    }

    if inspect_data:
        frame = load_dataset(csv_path, schema)
        results["data"] = summarize_dataset(frame, schema)
        logger.info(f"Data: {results['data']['num_rows']} row(s), label counts {results['data']['label_counts']}")

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(results, f, indent=2)
        logger.info(f"Inspection results saved to {output_path}")

    return results
