"""
异常与阶段结果

每个阶段要么返回产物（Ok），要么返回错误类型（Err），
由调用方（CLI、测试、库使用者）决定如何呈现。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class GbdtOnnxError(Exception):
    """gbdtonnx 异常基类。"""


class MalformedHeaderError(GbdtOnnxError, ValueError):
    """CSV 首行为空，或字段数少于 2（至少一个特征和一个标签）。"""


class DatasetLoadError(GbdtOnnxError, ValueError):
    """数据行字段数与表头不一致，或包含非数值字段。"""


class PipelineDefinitionError(GbdtOnnxError, ValueError):
    """Pipeline 声明结构无效。"""


class TrainingError(GbdtOnnxError, RuntimeError):
    """拟合失败（空数据集、标签不兼容等）。"""


class ModelExportError(GbdtOnnxError, OSError):
    """ONNX 转换失败或输出路径不可写。"""


class ModelLoadError(GbdtOnnxError, RuntimeError):
    """导出的模型文件缺失、不可读或不是有效的 ONNX 图。"""


class InferenceError(GbdtOnnxError, RuntimeError):
    """推理会话执行失败。"""


class ErrorKind(str, Enum):
    FILE_NOT_FOUND = "FileNotFoundError"
    MALFORMED_HEADER = "MalformedHeaderError"
    DATASET_LOAD = "DatasetLoadError"
    PIPELINE_DEFINITION = "PipelineDefinitionError"
    TRAINING = "TrainingError"
    IO = "IOError"
    MODEL_LOAD = "ModelLoadError"
    INFERENCE = "InferenceError"
    UNKNOWN = "UnknownError"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorKind:
        """将异常映射为错误类型。"""
        # 顺序有意义：ModelExportError 同时是 OSError
        if isinstance(exc, FileNotFoundError):
            return cls.FILE_NOT_FOUND
        if isinstance(exc, MalformedHeaderError):
            return cls.MALFORMED_HEADER
        if isinstance(exc, DatasetLoadError):
            return cls.DATASET_LOAD
        if isinstance(exc, PipelineDefinitionError):
            return cls.PIPELINE_DEFINITION
        if isinstance(exc, TrainingError):
            return cls.TRAINING
        if isinstance(exc, ModelLoadError):
            return cls.MODEL_LOAD
        if isinstance(exc, InferenceError):
            return cls.INFERENCE
        if isinstance(exc, OSError):
            return cls.IO
        return cls.UNKNOWN


@dataclass
class StageResult:
    """
    单个阶段的执行结果。

    Attributes:
        stage: 阶段名称
        ok: 是否成功
        value: 成功时的产物
        error_kind: 失败时的错误类型
        message: 诊断信息
        error: 原始异常（失败时）
        skipped: 是否因前序阶段失败而跳过
    """

    stage: str
    ok: bool
    value: Any = None
    error_kind: ErrorKind | None = None
    message: str = ""
    error: BaseException | None = None
    skipped: bool = False

    @classmethod
    def success(cls, stage: str, value: Any = None) -> StageResult:
        return cls(stage=stage, ok=True, value=value)

    @classmethod
    def failure(cls, stage: str, exc: BaseException) -> StageResult:
        return cls(
            stage=stage,
            ok=False,
            error_kind=ErrorKind.from_exception(exc),
            message=str(exc),
            error=exc,
        )

    @classmethod
    def skip(cls, stage: str, reason: str) -> StageResult:
        return cls(stage=stage, ok=False, message=reason, skipped=True)

    def unwrap(self) -> Any:
        """返回产物；失败时重新抛出记录的异常。"""
        if self.ok:
            return self.value
        if self.error is not None:
            raise self.error
        raise GbdtOnnxError(f"Stage '{self.stage}' did not run: {self.message}")

    def describe(self) -> str:
        if self.ok:
            return f"[{self.stage}] ok"
        if self.skipped:
            return f"[{self.stage}] skipped: {self.message}"
        return f"[{self.stage}] {self.error_kind.value}: {self.message}"
