"""
工具模块

配置与错误类型
"""

from .config import Config, config, get_config, reload_config
from .errors import (
    ActionDispatchFailure,
    AutomationError,
    CaptureFailure,
    CaptureTimeout,
    DecisionError,
    ExecutorUnavailable,
    TaskAlreadyRunningError,
    UnresolvedAppName,
)

__all__ = [
    "Config",
    "config",
    "get_config",
    "reload_config",
    "AutomationError",
    "CaptureFailure",
    "CaptureTimeout",
    "DecisionError",
    "ActionDispatchFailure",
    "UnresolvedAppName",
    "ExecutorUnavailable",
    "TaskAlreadyRunningError",
]
