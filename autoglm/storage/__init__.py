"""
任务记录模块
"""

from .recorder import JsonlTaskRecorder, NullRecorder, TaskRecorder

__all__ = [
    "TaskRecorder",
    "NullRecorder",
    "JsonlTaskRecorder",
]
