"""
悬浮窗渲染层

OverlayStateMachine 独占持有渲染资源；其他组件只能通过状态迁移间接修改它
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from loguru import logger
from rich.console import Console

from .state import Hidden, OverlayState, RecordingOverlay, ReviewOverlay, TaskCompleted, Visible

FrameCallback = Callable[[float], None]
Bounds = Tuple[int, int, int, int]

# 悬浮窗默认尺寸（像素）与刷新间隔
DEFAULT_WINDOW_SIZE = (350 * 3, 120 * 3)
FRAME_INTERVAL = 1 / 60


class OverlayRenderer(ABC):
    """
    悬浮窗渲染接口（UI 协作方）

    窗口以左下角为锚点，offset 为窗口底边到屏幕底边的距离
    """

    @abstractmethod
    def render(self, state: OverlayState) -> None:
        """展示给定状态"""

    @abstractmethod
    def collapse(self) -> None:
        """缩为零尺寸且不可触摸（窗口仍挂载）"""

    @abstractmethod
    def expand(self) -> None:
        """恢复正常尺寸与可触摸"""

    @abstractmethod
    def bounds(self) -> Optional[Bounds]:
        """窗口在屏幕上的区域 (left, top, right, bottom)，不可见时返回 None"""

    @property
    @abstractmethod
    def offset(self) -> int:
        """当前纵向偏移（距屏幕底部）"""

    @abstractmethod
    def move_to(self, offset: int) -> None:
        """移动到新的纵向偏移"""

    @abstractmethod
    def post_frame_callback(self, callback: FrameCallback) -> None:
        """下一帧绘制完成后回调（参数为帧时间戳）"""


class HeadlessOverlayRenderer(OverlayRenderer):
    """
    无界面渲染器

    只记录几何信息与状态，帧回调由事件循环按 60Hz 节拍驱动
    """

    def __init__(
        self,
        screen_size: Tuple[int, int] = (1080, 2400),
        window_size: Tuple[int, int] = DEFAULT_WINDOW_SIZE,
        offset: int = 20,
        frame_interval: float = FRAME_INTERVAL,
    ):
        self.screen_width, self.screen_height = screen_size
        self.window_width, self.window_height = window_size
        self._offset = offset
        self.frame_interval = frame_interval

        self.state: OverlayState = Hidden()
        self.attached = False
        self.collapsed = False
        self.rendered: List[OverlayState] = []

    def render(self, state: OverlayState) -> None:
        self.state = state
        self.rendered.append(state)

        if isinstance(state, Hidden):
            self.attached = False
            self.collapsed = False
        elif isinstance(state, (Visible, TaskCompleted, RecordingOverlay, ReviewOverlay)):
            self.attached = True

        logger.debug(f"Overlay rendered: {state.kind}")

    def collapse(self) -> None:
        self.collapsed = True

    def expand(self) -> None:
        self.collapsed = False

    def bounds(self) -> Optional[Bounds]:
        if not self.attached or self.collapsed:
            return None
        bottom = self.screen_height - self._offset
        return (0, bottom - self.window_height, self.window_width, bottom)

    @property
    def offset(self) -> int:
        return self._offset

    def move_to(self, offset: int) -> None:
        logger.debug(f"Overlay moved: offset {self._offset} -> {offset}")
        self._offset = offset

    def post_frame_callback(self, callback: FrameCallback) -> None:
        loop = asyncio.get_running_loop()
        loop.call_later(self.frame_interval, lambda: callback(loop.time()))


class ConsoleOverlayRenderer(HeadlessOverlayRenderer):
    """在终端输出状态变化的渲染器（CLI 使用）"""

    def __init__(self, console: Optional[Console] = None, **kwargs):
        super().__init__(**kwargs)
        self.console = console or Console()
        self._last_line: Optional[str] = None

    def render(self, state: OverlayState) -> None:
        super().render(state)

        line = None
        if isinstance(state, Visible):
            marker = "[yellow]●[/yellow]" if state.is_running else "[green]●[/green]"
            line = f"{marker} {state.status_text}"
        elif isinstance(state, TaskCompleted):
            line = f"[bold]■[/bold] {state.status_text}"

        if line and line != self._last_line:
            self.console.print(line)
            self._last_line = line
