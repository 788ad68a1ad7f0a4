"""
手势桥接

把 DevicePlatform 的回调式截图/手势原语包装为可 await 的调用，
并在每次调用期间挂起悬浮窗，保证截图与手势不被悬浮窗遮挡
"""

import asyncio
from typing import Any, List, Optional, Tuple

from loguru import logger
from PIL import Image

from ..overlay import OverlayStateMachine
from ..utils.errors import CaptureFailure, CaptureTimeout
from .platform import (
    ERROR_INTERNAL,
    ERROR_INTERVAL_TOO_SHORT,
    ERROR_INVALID_DISPLAY,
    ERROR_NO_ACCESS,
    DevicePlatform,
    GestureStroke,
)

TAP_DURATION_MS = 100
# 实际手势固定 500ms，保证被识别为滑动；轨迹动画按调用方给定时长播放
SWIPE_GESTURE_DURATION_MS = 500
DEFAULT_SWIPE_DURATION_MS = 1000
DEFAULT_GESTURE_TIMEOUT = 10.0

SCREENSHOT_ERRORS = {
    ERROR_INTERNAL: "INTERNAL_ERROR",
    ERROR_NO_ACCESS: "NO_ACCESSIBILITY_ACCESS",
    ERROR_INTERVAL_TOO_SHORT: "INTERVAL_TIME_SHORT",
    ERROR_INVALID_DISPLAY: "INVALID_DISPLAY",
}


class GestureBridge:
    """
    截图 / 手势桥接

    每个公开方法都保证：返回（包括超时、失败、取消）时悬浮窗不会停留在 Suspended
    """

    def __init__(
        self,
        platform: DevicePlatform,
        overlay: OverlayStateMachine,
        gesture_timeout: float = DEFAULT_GESTURE_TIMEOUT,
    ):
        """
        Args:
            platform: 设备平台
            overlay: 悬浮窗状态机
            gesture_timeout: 等待手势完成回调的最长时间（秒）
        """
        self.platform = platform
        self.overlay = overlay
        self.gesture_timeout = gesture_timeout
        self.last_capture_error: Optional[CaptureFailure] = None

    def screen_size(self) -> Tuple[int, int]:
        return self.platform.screen_size()

    # ========================================
    # 截图
    # ========================================

    async def capture(self, timeout: float = 5.0) -> Optional[Image.Image]:
        """
        截取屏幕（截图期间悬浮窗挂起）

        Args:
            timeout: 超时时间（秒），包含悬浮窗挂起等待帧的时间

        Returns:
            RGB 图像副本；失败或超时返回 None
        """
        self.last_capture_error = None
        try:
            image = await asyncio.wait_for(self._suspend_and_screenshot(), timeout)
        except asyncio.TimeoutError:
            self.last_capture_error = CaptureTimeout(f"Screenshot timed out after {timeout}s")
            logger.error(str(self.last_capture_error))
            return None
        except CaptureFailure as e:
            self.last_capture_error = e
            logger.error(str(e))
            return None
        finally:
            await asyncio.shield(self.overlay.restore())

        logger.debug(f"Screenshot captured: {image.size[0]}x{image.size[1]}")
        return image

    async def _suspend_and_screenshot(self) -> Image.Image:
        await self.overlay.suspend()
        return await self._request_screenshot()

    async def _request_screenshot(self) -> Image.Image:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def on_success(image: Image.Image) -> None:
            _resolve_threadsafe(loop, future, result=image)

        def on_failure(code: int) -> None:
            reason = SCREENSHOT_ERRORS.get(code, f"UNKNOWN({code})")
            _resolve_threadsafe(loop, future, exception=CaptureFailure(f"Screenshot failed: {reason}"))

        self.platform.take_screenshot(on_success, on_failure)
        image = await future
        # 平台的图像缓冲可能被复用，转换出独立的 RGB 副本
        return image.convert("RGB")

    # ========================================
    # 手势
    # ========================================

    async def dispatch_tap(self, x: float, y: float) -> bool:
        """
        点击

        Returns:
            是否成功（越界坐标直接返回 False，不会调用平台）
        """
        width, height = self.platform.screen_size()
        if x < 0 or x > width or y < 0 or y > height:
            logger.warning(f"Tap coordinates ({x}, {y}) out of bounds ({width}x{height})")
            return False

        await self.overlay.avoid_point(x, y, height)
        self.platform.show_gesture_trail([(x, y)], TAP_DURATION_MS)

        stroke = GestureStroke(points=[(x, y), (x, y)], duration_ms=TAP_DURATION_MS)
        success = await self._dispatch([stroke])
        logger.debug(f"Tap at ({x}, {y}): {'completed' if success else 'cancelled'}")
        return success

    async def dispatch_swipe(
        self,
        start_x: float,
        start_y: float,
        end_x: float,
        end_y: float,
        duration_ms: int = DEFAULT_SWIPE_DURATION_MS,
    ) -> bool:
        """
        滑动（以起点做悬浮窗避让）

        Args:
            duration_ms: 轨迹动画时长；实际手势固定为 500ms
        """
        _, height = self.platform.screen_size()
        await self.overlay.avoid_point(start_x, start_y, height)
        self.platform.show_gesture_trail([(start_x, start_y), (end_x, end_y)], duration_ms)

        stroke = GestureStroke(
            points=[(start_x, start_y), (end_x, end_y)],
            duration_ms=SWIPE_GESTURE_DURATION_MS,
        )
        success = await self._dispatch([stroke])
        logger.debug(
            f"Swipe ({start_x}, {start_y}) -> ({end_x}, {end_y}): "
            f"{'completed' if success else 'cancelled'}"
        )
        return success

    async def long_press(self, x: float, y: float, duration_ms: int = DEFAULT_SWIPE_DURATION_MS) -> bool:
        """长按：原地滑动"""
        return await self.dispatch_swipe(x, y, x, y, duration_ms)

    async def _dispatch(self, strokes: List[GestureStroke]) -> bool:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        try:
            await self.overlay.suspend()

            accepted = self.platform.dispatch_gesture(
                strokes,
                on_completed=lambda: _resolve_threadsafe(loop, future, result=True),
                on_cancelled=lambda: _resolve_threadsafe(loop, future, result=False),
            )
            if not accepted:
                logger.warning("Gesture rejected by platform")
                return False

            try:
                return await asyncio.wait_for(future, self.gesture_timeout)
            except asyncio.TimeoutError:
                logger.error(f"Gesture not acknowledged within {self.gesture_timeout}s")
                return False
        finally:
            await asyncio.shield(self.overlay.restore())


def _resolve_threadsafe(
    loop: asyncio.AbstractEventLoop,
    future: asyncio.Future,
    result: Any = None,
    exception: Optional[BaseException] = None,
) -> None:
    """从任意线程完成 future；重复回调与事件循环关闭后的迟到回调被忽略"""

    def settle() -> None:
        if future.done():
            return
        if exception is not None:
            future.set_exception(exception)
        else:
            future.set_result(result)

    if loop.is_closed():
        logger.debug("Late platform callback after loop shutdown, ignored")
        return
    loop.call_soon_threadsafe(settle)
