"""
数据模型包

导出所有数据模型
"""

from .action import (
    ActionCommand,
    ActionType,
    Back,
    DoubleTap,
    Error,
    Finish,
    Home,
    Launch,
    LongPress,
    Swipe,
    Tap,
    Type,
    Wait,
)
from .history import ContentItem, ConversationHistory, HistoryTurn, Role, encode_image
from .task import DEFAULT_MAX_STEPS, TaskOutcome, TaskResult, TaskSession, TaskStatus

__all__ = [
    # Action models
    "ActionCommand",
    "ActionType",
    "Tap",
    "DoubleTap",
    "LongPress",
    "Swipe",
    "Type",
    "Launch",
    "Back",
    "Home",
    "Wait",
    "Finish",
    "Error",
    # History models
    "Role",
    "ContentItem",
    "HistoryTurn",
    "ConversationHistory",
    "encode_image",
    # Task models
    "DEFAULT_MAX_STEPS",
    "TaskOutcome",
    "TaskStatus",
    "TaskSession",
    "TaskResult",
]
