"""
用户可见的状态文本
"""

from typing import Optional

from ..models import (
    ActionCommand,
    Back,
    DoubleTap,
    Error,
    Finish,
    Home,
    Launch,
    LongPress,
    Swipe,
    Tap,
    TaskOutcome,
    Type,
    Wait,
)

STATUS_STARTING = "Starting..."
STATUS_THINKING = "Thinking..."
STATUS_FINISHED = "Task finished"
STATUS_STOPPED = "Stopped"
STATUS_MAX_STEPS = "Reached maximum steps"

# 动作失败后注入的纠正提示
LAST_ACTION_FAILED = (
    "The last action failed. The screen did not change as expected. "
    "Check the current screen and try a different action."
)


def describe_action(action: ActionCommand) -> str:
    """动作的简短描述（悬浮窗状态栏）"""
    if isinstance(action, Tap):
        return "Tapping..."
    if isinstance(action, DoubleTap):
        return "Double tapping..."
    if isinstance(action, LongPress):
        return "Long pressing..."
    if isinstance(action, Swipe):
        return "Swiping..."
    if isinstance(action, Type):
        return f"Typing: {action.text}"
    if isinstance(action, Launch):
        return f"Launching {action.app_name}..."
    if isinstance(action, Back):
        return "Going back..."
    if isinstance(action, Home):
        return "Going home..."
    if isinstance(action, Wait):
        return "Waiting..."
    if isinstance(action, Finish):
        return STATUS_FINISHED
    if isinstance(action, Error):
        return f"Error: {action.reason}"
    return "Unknown action"


def terminal_status(outcome: TaskOutcome, error: Optional[str] = None) -> str:
    """任务结束时展示的最终状态（错误原文展示）"""
    if outcome == TaskOutcome.COMPLETED:
        return STATUS_FINISHED
    if outcome == TaskOutcome.USER_STOPPED:
        return STATUS_STOPPED
    if outcome == TaskOutcome.MAX_STEPS_REACHED:
        return STATUS_MAX_STEPS
    return error or "Error"
