"""
单元测试公共夹具

FakePlatform 同步回调截图/手势结果，便于在单个事件循环内驱动整个流程
"""

from typing import Callable, List, Optional, Tuple

import pytest
from PIL import Image

from autoglm.device import DevicePlatform, ExecutionResult, GestureBridge, GestureStroke
from autoglm.device.platform import ERROR_INTERNAL
from autoglm.overlay import HeadlessOverlayRenderer, OverlayStateMachine

SCREEN = (1080, 2400)


class FakePlatform(DevicePlatform):
    """
    内存中的设备平台

    screenshot_mode: ok / fail / hang
    gesture_mode: complete / cancel / reject
    """

    def __init__(self, size: Tuple[int, int] = SCREEN):
        self.size = size
        self.image = Image.new("RGBA", (size[0] // 10, size[1] // 10), (10, 20, 30, 255))
        self.screenshot_mode = "ok"
        self.gesture_mode = "complete"
        self.app: Optional[str] = "com.android.launcher"

        self.screenshots = 0
        self.gestures: List[List[GestureStroke]] = []
        self.trails: List[Tuple[list, int]] = []
        self.keys: List[str] = []
        self.launched: List[str] = []
        self.typed: List[str] = []

    def screen_size(self) -> Tuple[int, int]:
        return self.size

    def take_screenshot(self, on_success: Callable, on_failure: Callable) -> None:
        self.screenshots += 1
        if self.screenshot_mode == "ok":
            on_success(self.image)
        elif self.screenshot_mode == "fail":
            on_failure(ERROR_INTERNAL)

    def dispatch_gesture(self, strokes, on_completed, on_cancelled) -> bool:
        self.gestures.append(list(strokes))
        if self.gesture_mode == "reject":
            return False
        if self.gesture_mode == "cancel":
            on_cancelled()
        else:
            on_completed()
        return True

    async def press_back(self) -> ExecutionResult:
        self.keys.append("back")
        return ExecutionResult.ok("Pressed key BACK", operation="press_key")

    async def press_home(self) -> ExecutionResult:
        self.keys.append("home")
        return ExecutionResult.ok("Pressed key HOME", operation="press_key")

    async def launch_app(self, package: str) -> ExecutionResult:
        self.launched.append(package)
        return ExecutionResult.ok(f"App started: {package}", operation="start_app")

    async def input_text(self, text: str) -> ExecutionResult:
        self.typed.append(text)
        return ExecutionResult.ok(f"Input text: {text}", operation="input_text")

    async def current_app(self) -> Optional[str]:
        return self.app

    def show_gesture_trail(self, points, duration_ms: int) -> None:
        self.trails.append((list(points), duration_ms))


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def renderer():
    return HeadlessOverlayRenderer(screen_size=SCREEN, frame_interval=0.001)


@pytest.fixture
def overlay(renderer):
    return OverlayStateMachine(renderer, settle_margin=0.0, frame_timeout=0.05)


@pytest.fixture
def bridge(platform, overlay):
    return GestureBridge(platform, overlay, gesture_timeout=1.0)
