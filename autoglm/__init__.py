"""
AutoGLM - 基于视觉语言模型的 Android 自动化

感知（截图）-> 决策（模型）-> 执行（手势/按键）循环
"""

from .core import TaskOrchestrator
from .models import TaskOutcome, TaskResult

__version__ = "0.1.0"

__all__ = [
    "TaskOrchestrator",
    "TaskOutcome",
    "TaskResult",
    "__version__",
]
