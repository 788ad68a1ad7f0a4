"""
截图 / 手势桥接测试

重点：任何返回路径下悬浮窗都不会停留在 Suspended
"""

import asyncio

import pytest

from autoglm.device import GestureBridge
from autoglm.device.gesture_bridge import SWIPE_GESTURE_DURATION_MS, TAP_DURATION_MS
from autoglm.overlay import HeadlessOverlayRenderer, OverlayStateMachine
from autoglm.overlay.state import Hidden, Suspended, Visible
from autoglm.utils.errors import CaptureTimeout


def _kinds(renderer):
    return [state.kind for state in renderer.rendered]


class TestCapture:
    @pytest.mark.asyncio
    async def test_capture_suspends_and_restores(self, bridge, overlay, renderer):
        await overlay.show("Working")

        image = await bridge.capture(timeout=1.0)

        assert image is not None
        assert image.mode == "RGB"
        assert image.size == (108, 240)
        assert "suspended" in _kinds(renderer)
        assert isinstance(overlay.state, Visible)
        assert renderer.collapsed is False

    @pytest.mark.asyncio
    async def test_capture_failure_returns_none(self, bridge, overlay, platform):
        await overlay.show("Working")
        platform.screenshot_mode = "fail"

        assert await bridge.capture(timeout=1.0) is None
        assert isinstance(overlay.state, Visible)
        assert "INTERNAL_ERROR" in str(bridge.last_capture_error)
        assert not isinstance(bridge.last_capture_error, CaptureTimeout)

    @pytest.mark.asyncio
    async def test_capture_timeout_returns_none(self, bridge, overlay, platform):
        await overlay.show("Working")
        platform.screenshot_mode = "hang"

        assert await bridge.capture(timeout=0.05) is None
        assert isinstance(overlay.state, Visible)
        assert isinstance(bridge.last_capture_error, CaptureTimeout)

    @pytest.mark.asyncio
    async def test_timeout_covers_overlay_settle(self, platform):
        # 渲染器不回调帧时，挂起等待也计入截图超时
        renderer = HeadlessOverlayRenderer(frame_interval=60.0)
        overlay = OverlayStateMachine(renderer, settle_margin=0.0, frame_timeout=5.0)
        bridge = GestureBridge(platform, overlay)
        await overlay.show("Working")

        assert await asyncio.wait_for(bridge.capture(timeout=0.05), 1.0) is None
        assert isinstance(bridge.last_capture_error, CaptureTimeout)
        assert platform.screenshots == 0
        assert isinstance(overlay.state, Visible)
        assert renderer.collapsed is False

    @pytest.mark.asyncio
    async def test_cancelled_capture_restores_overlay(self, bridge, overlay, platform):
        await overlay.show("Working")
        platform.screenshot_mode = "hang"

        task = asyncio.create_task(bridge.capture(timeout=5.0))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not isinstance(overlay.state, Suspended)
        assert isinstance(overlay.state, Visible)

    @pytest.mark.asyncio
    async def test_capture_with_hidden_overlay(self, bridge, overlay):
        image = await bridge.capture(timeout=1.0)

        assert image is not None
        assert isinstance(overlay.state, Hidden)


class TestGestures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("x, y", [(-1, 10), (1081, 10), (10, -5), (10, 2401)])
    async def test_out_of_bounds_tap_never_dispatched(self, bridge, overlay, renderer, platform, x, y):
        await overlay.show("Working")

        assert await bridge.dispatch_tap(x, y) is False
        assert platform.gestures == []
        assert platform.trails == []
        assert "suspended" not in _kinds(renderer)

    @pytest.mark.asyncio
    async def test_tap_on_screen_edge_is_allowed(self, bridge, platform):
        assert await bridge.dispatch_tap(1080, 2400) is True
        assert len(platform.gestures) == 1

    @pytest.mark.asyncio
    async def test_tap_stroke(self, bridge, overlay, platform):
        await overlay.show("Working")

        assert await bridge.dispatch_tap(540, 1200) is True

        (stroke,) = platform.gestures[0]
        assert stroke.points == [(540, 1200), (540, 1200)]
        assert stroke.duration_ms == TAP_DURATION_MS
        assert platform.trails == [([(540, 1200)], TAP_DURATION_MS)]
        assert isinstance(overlay.state, Visible)

    @pytest.mark.asyncio
    async def test_swipe_gesture_uses_fixed_duration(self, bridge, platform):
        assert await bridge.dispatch_swipe(100, 2000, 100, 400, duration_ms=1200) is True

        (stroke,) = platform.gestures[0]
        assert stroke.start == (100, 2000)
        assert stroke.end == (100, 400)
        assert stroke.duration_ms == SWIPE_GESTURE_DURATION_MS
        # 轨迹动画按调用方时长播放
        assert platform.trails[0][1] == 1200

    @pytest.mark.asyncio
    async def test_long_press_is_stationary_swipe(self, bridge, platform):
        assert await bridge.long_press(300, 600) is True

        (stroke,) = platform.gestures[0]
        assert stroke.start == stroke.end == (300, 600)
        assert stroke.duration_ms == SWIPE_GESTURE_DURATION_MS

    @pytest.mark.asyncio
    async def test_rejected_gesture(self, bridge, overlay, platform):
        await overlay.show("Working")
        platform.gesture_mode = "reject"

        assert await bridge.dispatch_tap(540, 1200) is False
        assert isinstance(overlay.state, Visible)

    @pytest.mark.asyncio
    async def test_cancelled_gesture(self, bridge, overlay, platform):
        await overlay.show("Working")
        platform.gesture_mode = "cancel"

        assert await bridge.dispatch_tap(540, 1200) is False
        assert isinstance(overlay.state, Visible)

    @pytest.mark.asyncio
    async def test_tap_under_overlay_moves_it(self, bridge, overlay, renderer):
        await overlay.show("Working")
        _, top, _, bottom = renderer.bounds()

        assert await bridge.dispatch_tap(500, (top + bottom) // 2) is True
        assert renderer.offset == 2400 - overlay.top_margin
