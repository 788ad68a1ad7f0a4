"""
悬浮窗状态

封闭的状态集合 + 合法迁移表
"""

from typing import Callable, Dict, FrozenSet, Literal, Optional, Type, Union

from pydantic import BaseModel, Field


class Hidden(BaseModel):
    """未挂载到屏幕"""

    kind: Literal["hidden"] = "hidden"

    class Config:
        frozen = True


class Visible(BaseModel):
    """可见且可交互"""

    kind: Literal["visible"] = "visible"
    status_text: str = Field("", description="状态文本")
    is_running: bool = Field(False, description="任务是否运行中（决定显示停止按钮）")
    stop_handle: Optional[Callable[[], None]] = Field(None, description="停止按钮回调", repr=False)

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class Suspended(BaseModel):
    """截图/手势期间临时隐藏（零尺寸、不可触摸）"""

    kind: Literal["suspended"] = "suspended"
    cached_visible: Visible

    class Config:
        frozen = True


class RecordingOverlay(BaseModel):
    """全屏录音指示层"""

    kind: Literal["recording"] = "recording"
    underlying: Visible

    class Config:
        frozen = True


class ReviewOverlay(BaseModel):
    """全屏语音识别结果确认层"""

    kind: Literal["review"] = "review"
    underlying: Visible
    text: str = ""

    class Config:
        frozen = True


class TaskCompleted(BaseModel):
    """任务结束后的展示"""

    kind: Literal["completed"] = "completed"
    status_text: str = ""

    class Config:
        frozen = True


OverlayState = Union[Hidden, Visible, Suspended, RecordingOverlay, ReviewOverlay, TaskCompleted]

# 合法迁移：源状态类型 -> 允许的目标状态类型
TRANSITIONS: Dict[Type[BaseModel], FrozenSet[Type[BaseModel]]] = {
    Hidden: frozenset({Visible}),
    Visible: frozenset({Visible, Hidden, Suspended, RecordingOverlay, ReviewOverlay, TaskCompleted}),
    Suspended: frozenset({Visible, Hidden}),
    RecordingOverlay: frozenset({Visible, ReviewOverlay, Hidden}),
    ReviewOverlay: frozenset({Visible, Hidden}),
    TaskCompleted: frozenset({Visible, Hidden, RecordingOverlay}),
}


def is_legal(source: OverlayState, target: OverlayState) -> bool:
    """source -> target 是否为合法迁移"""
    return type(target) in TRANSITIONS.get(type(source), frozenset())


def visible_of(state: OverlayState) -> Optional[Visible]:
    """状态背后的 Visible（没有时返回 None）"""
    if isinstance(state, Visible):
        return state
    if isinstance(state, Suspended):
        return state.cached_visible
    if isinstance(state, (RecordingOverlay, ReviewOverlay)):
        return state.underlying
    return None
