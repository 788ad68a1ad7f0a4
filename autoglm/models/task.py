"""
任务模型

定义一次自动化任务（会话）的状态与结果
"""

import asyncio
import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .history import ConversationHistory

DEFAULT_MAX_STEPS = 20


class TaskOutcome(str, Enum):
    """任务终止状态"""

    COMPLETED = "completed"  # 正常 Finish
    MAX_STEPS_REACHED = "max_steps_reached"  # 达到步数上限
    USER_STOPPED = "user_stopped"  # 用户停止
    ERROR = "error"  # 致命错误


class TaskStatus(str, Enum):
    """编排器状态"""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    MAX_STEPS_REACHED = "max_steps_reached"
    USER_STOPPED = "user_stopped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.IDLE, TaskStatus.RUNNING)

    @classmethod
    def from_outcome(cls, outcome: TaskOutcome) -> "TaskStatus":
        return cls(outcome.value)


class TaskSession(BaseModel):
    """
    任务会话

    由 TaskOrchestrator 独占持有，start 时创建，终止时交给记录器归档
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12], description="会话 ID")
    goal: str = Field(..., description="任务目标")
    step: int = Field(0, description="当前步数")
    max_steps: int = Field(DEFAULT_MAX_STEPS, ge=1, description="最大步数")
    history: ConversationHistory = Field(default_factory=ConversationHistory)
    cancel_event: asyncio.Event = Field(default_factory=asyncio.Event)
    outcome: Optional[TaskOutcome] = Field(None, description="终止状态（循环结束前为空）")
    error: Optional[str] = Field(None, description="最后一个致命错误")
    started_at: float = Field(default_factory=time.time)
    finished_at: Optional[float] = None

    class Config:
        arbitrary_types_allowed = True

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class TaskResult(BaseModel):
    """任务执行结果（给调用方 / 记录器）"""

    session_id: str
    goal: str
    outcome: TaskOutcome
    steps: int
    error: Optional[str] = None
    message: Optional[str] = None
    duration_s: Optional[float] = None
