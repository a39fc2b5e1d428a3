"""
全局配置模块

提供：
- 目录管理
- MLflow 配置（可选）
- 日志配置
- 默认输入/输出文件路径
"""
from __future__ import annotations

import logging
import logging.config
import os
import sys
from pathlib import Path

# MLflow 是可选依赖
_mlflow = None
try:
    import mlflow

    _mlflow = mlflow
except ImportError:
    pass

# 目录配置
ROOT_DIR = Path(__file__).parent.parent.absolute()
LOGS_DIR = Path(os.environ.get("GBDTONNX_LOGS_DIR", Path(ROOT_DIR, "logs")))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# MLflow 配置（仅在可用时设置）
MODEL_REGISTRY = Path(ROOT_DIR, "mlruns")
if _mlflow is not None:
    MLFLOW_TRACKING_URI = "file://" + str(MODEL_REGISTRY.absolute())
else:
    MLFLOW_TRACKING_URI = None

# 默认文件名
DEFAULT_CSV_NAME = "record.csv"
DEFAULT_MODEL_NAME = "model.onnx"

# 调试器下运行时，数据文件位于工作目录向上三级
DEBUG_SEARCH_DEPTH = 3

# 日志配置
logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "minimal": {"format": "%(message)s"},
        "detailed": {
            "format": "%(levelname)s %(asctime)s [%(name)s:%(filename)s:%(funcName)s:%(lineno)d]\n%(message)s\n"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "stream": sys.stdout,
            "formatter": "minimal",
            "level": logging.DEBUG,
        },
        "info": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": Path(LOGS_DIR, "info.log"),
            "maxBytes": 10485760,  # 10 MB
            "backupCount": 10,
            "formatter": "detailed",
            "level": logging.INFO,
        },
        "error": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": Path(LOGS_DIR, "error.log"),
            "maxBytes": 10485760,  # 10 MB
            "backupCount": 10,
            "formatter": "detailed",
            "level": logging.ERROR,
        },
    },
    "loggers": {
        "gbdtonnx": {
            "handlers": ["console", "info", "error"],
            "level": logging.INFO,
            "propagate": True,
        },
    },
}

# 初始化日志
logging.config.dictConfig(logging_config)
logger = logging.getLogger("gbdtonnx")


def debugger_attached() -> bool:
    """判断当前进程是否运行在调试器下。"""
    return sys.gettrace() is not None


def resolve_default_paths(
    csv_name: str = DEFAULT_CSV_NAME,
    model_name: str = DEFAULT_MODEL_NAME,
    base_dir: str | Path | None = None,
) -> tuple[Path, Path]:
    """
    解析默认的 CSV 和 ONNX 文件路径。

    交互式调试时（调试器已附加），文件位于工作目录向上三级；
    否则直接位于工作目录。

    Args:
        csv_name: CSV 文件名
        model_name: ONNX 模型文件名
        base_dir: 基准目录（默认为当前工作目录）

    Returns:
        (csv_path, onnx_path)
    """
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    if debugger_attached():
        base = base.joinpath(*([".."] * DEBUG_SEARCH_DEPTH))
    return base / csv_name, base / model_name


__all__ = [
    "logger",
    "ROOT_DIR",
    "LOGS_DIR",
    "MLFLOW_TRACKING_URI",
    "MODEL_REGISTRY",
    "DEFAULT_CSV_NAME",
    "DEFAULT_MODEL_NAME",
    "debugger_attached",
    "resolve_default_paths",
]
