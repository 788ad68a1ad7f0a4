"""
设备交互模块

提供设备平台接口、ADB 实现与手势桥接
"""

from .adb_platform import AdbPlatform
from .execution_result import ExecutionResult
from .gesture_bridge import GestureBridge
from .platform import DevicePlatform, GestureStroke

__all__ = [
    "DevicePlatform",
    "GestureStroke",
    "AdbPlatform",
    "GestureBridge",
    "ExecutionResult",
]
