"""
动作模型

定义决策服务可以下发的操作类型（封闭的变体集合）
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ActionType(str, Enum):
    """动作类型枚举"""

    TAP = "tap"  # 点击
    DOUBLE_TAP = "double_tap"  # 双击
    LONG_PRESS = "long_press"  # 长按
    SWIPE = "swipe"  # 滑动
    TYPE = "type"  # 输入文本
    LAUNCH = "launch"  # 启动应用
    BACK = "back"  # 返回键
    HOME = "home"  # Home 键
    WAIT = "wait"  # 等待
    FINISH = "finish"  # 任务完成
    ERROR = "error"  # 解析/决策错误


class ActionCommand(BaseModel):
    """
    动作基类

    所有坐标均为屏幕绝对像素
    """

    type: ActionType

    class Config:
        frozen = True


class Tap(ActionCommand):
    type: Literal[ActionType.TAP] = ActionType.TAP
    x: int = Field(..., description="X 坐标")
    y: int = Field(..., description="Y 坐标")


class DoubleTap(ActionCommand):
    type: Literal[ActionType.DOUBLE_TAP] = ActionType.DOUBLE_TAP
    x: int = Field(..., description="X 坐标")
    y: int = Field(..., description="Y 坐标")


class LongPress(ActionCommand):
    type: Literal[ActionType.LONG_PRESS] = ActionType.LONG_PRESS
    x: int = Field(..., description="X 坐标")
    y: int = Field(..., description="Y 坐标")
    duration_ms: int = Field(1000, description="按压时长（毫秒）")


class Swipe(ActionCommand):
    type: Literal[ActionType.SWIPE] = ActionType.SWIPE
    start_x: int = Field(..., description="起点 X")
    start_y: int = Field(..., description="起点 Y")
    end_x: int = Field(..., description="终点 X")
    end_y: int = Field(..., description="终点 Y")
    duration_ms: int = Field(1000, description="轨迹动画时长（毫秒）")


class Type(ActionCommand):
    type: Literal[ActionType.TYPE] = ActionType.TYPE
    text: str = Field(..., description="输入的文本")


class Launch(ActionCommand):
    type: Literal[ActionType.LAUNCH] = ActionType.LAUNCH
    app_name: str = Field(..., description="应用显示名")


class Back(ActionCommand):
    type: Literal[ActionType.BACK] = ActionType.BACK


class Home(ActionCommand):
    type: Literal[ActionType.HOME] = ActionType.HOME


class Wait(ActionCommand):
    type: Literal[ActionType.WAIT] = ActionType.WAIT
    duration_ms: int = Field(1000, ge=0, description="等待时长（毫秒）")


class Finish(ActionCommand):
    type: Literal[ActionType.FINISH] = ActionType.FINISH
    message: str = Field("", description="结束信息")


class Error(ActionCommand):
    type: Literal[ActionType.ERROR] = ActionType.ERROR
    reason: str = Field(..., description="错误原因")
