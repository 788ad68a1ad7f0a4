"""
悬浮窗模块

状态模型、渲染器与状态机
"""

from .renderer import ConsoleOverlayRenderer, HeadlessOverlayRenderer, OverlayRenderer
from .state import (
    TRANSITIONS,
    Hidden,
    OverlayState,
    RecordingOverlay,
    ReviewOverlay,
    Suspended,
    TaskCompleted,
    Visible,
    is_legal,
    visible_of,
)
from .state_machine import OverlayStateMachine

__all__ = [
    "OverlayRenderer",
    "HeadlessOverlayRenderer",
    "ConsoleOverlayRenderer",
    "OverlayState",
    "Hidden",
    "Visible",
    "Suspended",
    "RecordingOverlay",
    "ReviewOverlay",
    "TaskCompleted",
    "TRANSITIONS",
    "is_legal",
    "visible_of",
    "OverlayStateMachine",
]
