"""
Pipeline 构建

根据 Schema 生成声明式的四步 pipeline：

1. map_value_to_key    标签值 → 连续整数键（按排序后的取值分配）
2. concatenate         所有特征列按 Schema 顺序拼接为一个向量列
3. lightgbm_multiclass 梯度提升树多分类训练器
4. map_key_to_value    预测键 → 原始标签值

构建过程不做任何 I/O；materialize() 再把声明转换为 sklearn / lightgbm 对象。
标签编码和解码由 LGBMClassifier 的 classes_ 完成，导出的 ONNX 图直接输出原始标签值。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from ..config import logger
from ..data.schema import Schema
from ..errors import PipelineDefinitionError

FEATURES_COLUMN = "Features"
PREDICTED_LABEL_COLUMN = "PredictedLabel"
SCORE_COLUMN = "Score"

STEP_MAP_VALUE_TO_KEY = "map_value_to_key"
STEP_CONCATENATE = "concatenate"
STEP_TRAINER = "lightgbm_multiclass"
STEP_MAP_KEY_TO_VALUE = "map_key_to_value"

# 配置文件中允许的驼峰命名
_CAMEL_CASE_ALIASES = {
    "minLeafSamples": "min_leaf_samples",
    "maxLeaves": "max_leaves",
    "iterations": "iterations",
    "learningRate": "learning_rate",
    "maxBinsPerFeature": "max_bins_per_feature",
}


@dataclass
class TrainerOptions:
    """
    梯度提升树训练器选项。

    Attributes:
        min_leaf_samples: 形成叶子所需的最少样本数
        max_leaves: 每棵树的最大叶子数
        iterations: 提升轮数
        learning_rate: 步长
        max_bins_per_feature: 每个特征的直方图分箱上限
        seed: 随机种子
    """

    min_leaf_samples: int = 5
    max_leaves: int = 31
    iterations: int = 100
    learning_rate: float = 0.1
    max_bins_per_feature: int = 50
    seed: int = 42

    @classmethod
    def from_dict(cls, params: dict[str, Any] | None) -> TrainerOptions:
        """从配置字典创建（同时接受 snake_case 和 camelCase 键名）。"""
        if not params:
            return cls()

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                raise PipelineDefinitionError(f"Unknown trainer option '{key}'. Valid options: {sorted(known)}")
            kwargs[name] = value

        options = cls(**kwargs)
        options.validate()
        return options

    def validate(self) -> None:
        errors = []
        for name in ("min_leaf_samples", "max_leaves", "iterations", "max_bins_per_feature"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(f"{name} must be a positive integer, got {value!r}")
        if self.max_leaves < 2:
            errors.append(f"max_leaves must be >= 2, got {self.max_leaves}")
        if self.max_bins_per_feature < 2:
            errors.append(f"max_bins_per_feature must be >= 2, got {self.max_bins_per_feature}")
        if not isinstance(self.learning_rate, (int, float)) or self.learning_rate <= 0:
            errors.append(f"learning_rate must be positive, got {self.learning_rate!r}")
        if errors:
            raise PipelineDefinitionError("Invalid trainer options:\n" + "\n".join(f"  - {e}" for e in errors))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_lightgbm_params(self) -> dict[str, Any]:
        """转换为 LGBMClassifier 参数。"""
        return {
            "n_estimators": self.iterations,
            "learning_rate": float(self.learning_rate),
            "num_leaves": self.max_leaves,
            "min_child_samples": self.min_leaf_samples,
            "max_bin": self.max_bins_per_feature,
            "random_state": self.seed,
            "n_jobs": 1,
            "verbose": -1,
        }


@dataclass(frozen=True)
class PipelineStep:
    """Pipeline 中的一个步骤：名称、类型、输入列、输出列和选项。"""

    name: str
    kind: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineSpec:
    """有序的 transform 步骤加一个训练器步骤。"""

    schema: Schema
    steps: list[PipelineStep]

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    @property
    def trainer(self) -> PipelineStep:
        trainers = [step for step in self.steps if step.kind == "trainer"]
        if len(trainers) != 1:
            raise PipelineDefinitionError(f"Pipeline must contain exactly one trainer step, found {len(trainers)}")
        return trainers[0]

    @property
    def trainer_options(self) -> TrainerOptions:
        return self.trainer.options["trainer_options"]

    def validate(self) -> None:
        """
        验证 pipeline 结构。

        - 每个步骤的输入列必须由之前的步骤产生，或存在于原始 Schema 中
        - 训练器步骤必须恰好引用一个特征向量列和一个标签列

        Raises:
            PipelineDefinitionError: 结构无效
        """
        if self.schema.feature_count == 0:
            raise PipelineDefinitionError("Schema has no feature columns")

        available = set(self.schema.column_names)
        for step in self.steps:
            missing = [name for name in step.inputs if name not in available]
            if missing:
                raise PipelineDefinitionError(f"Step '{step.name}' consumes column(s) {missing} that no earlier step produces")
            available.update(step.outputs)

        trainer = self.trainer
        feature_column = trainer.options.get("feature_column")
        label_column = trainer.options.get("label_column")
        if not feature_column or not label_column:
            raise PipelineDefinitionError("Trainer step must name one feature column and one label column")
        if tuple(trainer.inputs) != (feature_column, label_column):
            raise PipelineDefinitionError(
                f"Trainer step inputs {list(trainer.inputs)} must be exactly [{feature_column!r}, {label_column!r}]"
            )
        if feature_column in self.schema.column_names:
            raise PipelineDefinitionError(f"Trainer feature column '{feature_column}' must be a concatenated vector, not a raw column")

    def describe(self) -> list[str]:
        return [f"{i + 1}. {step.name}: {list(step.inputs)} -> {list(step.outputs)}" for i, step in enumerate(self.steps)]


def build_pipeline(schema: Schema, options: TrainerOptions | None = None) -> PipelineSpec:
    """
    根据 Schema 构建四步 pipeline 声明。

    Args:
        schema: 列结构
        options: 训练器选项（默认使用 TrainerOptions()）

    Returns:
        PipelineSpec

    Raises:
        PipelineDefinitionError: Schema 没有特征列，或选项无效
    """
    if schema.feature_count == 0:
        raise PipelineDefinitionError("Cannot build a pipeline for a schema with zero feature columns")

    options = options or TrainerOptions()
    options.validate()

    label = schema.label_name
    steps = [
        PipelineStep(
            name=STEP_MAP_VALUE_TO_KEY,
            kind="transform",
            inputs=(label,),
            outputs=(label,),
            options={"key_order": "sorted"},
        ),
        PipelineStep(
            name=STEP_CONCATENATE,
            kind="transform",
            inputs=tuple(schema.feature_names),
            outputs=(FEATURES_COLUMN,),
        ),
        PipelineStep(
            name=STEP_TRAINER,
            kind="trainer",
            inputs=(FEATURES_COLUMN, label),
            outputs=(PREDICTED_LABEL_COLUMN, SCORE_COLUMN),
            options={
                "feature_column": FEATURES_COLUMN,
                "label_column": label,
                "trainer_options": options,
            },
        ),
        PipelineStep(
            name=STEP_MAP_KEY_TO_VALUE,
            kind="transform",
            inputs=(PREDICTED_LABEL_COLUMN,),
            outputs=(PREDICTED_LABEL_COLUMN,),
        ),
    ]

    spec = PipelineSpec(schema=schema, steps=steps)
    spec.validate()
    logger.info("Pipeline:\n" + "\n".join(f"  {line}" for line in spec.describe()))
    return spec


def materialize(spec: PipelineSpec):
    """
    将 pipeline 声明转换为库对象。

    Returns:
        sklearn Pipeline：特征拼接 + LGBMClassifier。
        LGBMClassifier 直接在原始标签值上拟合，classes_ 按排序后的取值
        实现键编码/解码两步
    """
    from lightgbm import LGBMClassifier
    from sklearn.compose import ColumnTransformer
    from sklearn.pipeline import Pipeline

    spec.validate()
    params = spec.trainer_options.to_lightgbm_params()

    concatenate = ColumnTransformer(
        [("features", "passthrough", spec.schema.feature_names)],
        remainder="drop",
    )
    estimator = Pipeline(
        [
            (STEP_CONCATENATE, concatenate),
            (STEP_TRAINER, LGBMClassifier(**params)),
        ]
    )
    return estimator
