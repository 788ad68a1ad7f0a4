"""
设备平台接口

截图与手势是基于回调的原语：调用立即返回，结果稍后在任意线程上回调。
GestureBridge 负责把它们转换为可 await 的调用
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from loguru import logger
from PIL import Image
from pydantic import BaseModel, Field

from .execution_result import ExecutionResult

Point = Tuple[float, float]
ScreenshotSuccess = Callable[[Image.Image], None]
ScreenshotFailure = Callable[[int], None]

# 截图失败错误码
ERROR_INTERNAL = 1
ERROR_NO_ACCESS = 2
ERROR_INTERVAL_TOO_SHORT = 3
ERROR_INVALID_DISPLAY = 4


class GestureStroke(BaseModel):
    """手势中的一笔"""

    points: List[Point] = Field(..., min_length=1, description="轨迹点（像素）")
    start_ms: int = Field(0, ge=0, description="相对手势开始的起始时间")
    duration_ms: int = Field(..., gt=0, description="持续时间")

    class Config:
        frozen = True

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]


class DevicePlatform(ABC):
    """
    设备平台（感知 / 手势协作方）

    take_screenshot、dispatch_gesture 的回调可能来自任意线程，且每次调用至多回调一次
    """

    @abstractmethod
    def screen_size(self) -> Tuple[int, int]:
        """屏幕尺寸 (width, height)，单位像素"""

    @abstractmethod
    def take_screenshot(self, on_success: ScreenshotSuccess, on_failure: ScreenshotFailure) -> None:
        """请求截图"""

    @abstractmethod
    def dispatch_gesture(
        self,
        strokes: List[GestureStroke],
        on_completed: Callable[[], None],
        on_cancelled: Callable[[], None],
    ) -> bool:
        """
        注入手势

        Returns:
            平台是否接受了该手势（False 时不会有回调）
        """

    @abstractmethod
    async def press_back(self) -> ExecutionResult:
        """返回键"""

    @abstractmethod
    async def press_home(self) -> ExecutionResult:
        """Home 键"""

    @abstractmethod
    async def launch_app(self, package: str) -> ExecutionResult:
        """按包名启动应用"""

    @abstractmethod
    async def input_text(self, text: str) -> ExecutionResult:
        """向当前焦点输入文本"""

    async def current_app(self) -> Optional[str]:
        """前台应用包名，未知时返回 None"""
        return None

    def show_gesture_trail(self, points: List[Point], duration_ms: int) -> None:
        """显示手势轨迹动画（纯视觉效果，默认只记日志）"""
        logger.debug(f"Gesture trail {points} over {duration_ms}ms")
