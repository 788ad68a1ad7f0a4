"""
动作执行器测试
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from autoglm.apps import AppNameResolver, StaticAppInventory
from autoglm.device import ExecutionResult
from autoglm.execution import ActionExecutor
from autoglm.models import (
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


@pytest.fixture
def mock_bridge():
    bridge = Mock()
    bridge.dispatch_tap = AsyncMock(return_value=True)
    bridge.dispatch_swipe = AsyncMock(return_value=True)
    bridge.long_press = AsyncMock(return_value=True)
    return bridge


@pytest.fixture
def mock_platform():
    platform = Mock()
    platform.press_back = AsyncMock(return_value=ExecutionResult.ok("Pressed key BACK"))
    platform.press_home = AsyncMock(return_value=ExecutionResult.ok("Pressed key HOME"))
    platform.input_text = AsyncMock(return_value=ExecutionResult.ok("Input text"))
    platform.launch_app = AsyncMock(return_value=ExecutionResult.ok("App started"))
    return platform


@pytest.fixture
def resolver():
    return AppNameResolver(StaticAppInventory({"Chrome": "com.android.chrome"}))


@pytest.fixture
def executor(mock_bridge, mock_platform, resolver):
    return ActionExecutor(mock_bridge, mock_platform, resolver, settle_delay=0, launch_delay=0)


class TestGestureActions:
    @pytest.mark.asyncio
    async def test_tap(self, executor, mock_bridge):
        assert await executor.execute(Tap(x=540, y=1200)) is True
        mock_bridge.dispatch_tap.assert_awaited_once_with(540, 1200)

    @pytest.mark.asyncio
    async def test_tap_failure(self, executor, mock_bridge):
        mock_bridge.dispatch_tap.return_value = False
        assert await executor.execute(Tap(x=540, y=1200)) is False

    @pytest.mark.asyncio
    async def test_double_tap_taps_twice(self, executor, mock_bridge):
        assert await executor.execute(DoubleTap(x=10, y=20)) is True
        assert mock_bridge.dispatch_tap.await_count == 2

    @pytest.mark.asyncio
    async def test_double_tap_fails_if_either_tap_fails(self, executor, mock_bridge):
        mock_bridge.dispatch_tap.side_effect = [True, False]
        assert await executor.execute(DoubleTap(x=10, y=20)) is False

    @pytest.mark.asyncio
    async def test_long_press(self, executor, mock_bridge):
        assert await executor.execute(LongPress(x=10, y=20)) is True
        mock_bridge.long_press.assert_awaited_once_with(10, 20, 1000)

    @pytest.mark.asyncio
    async def test_swipe(self, executor, mock_bridge):
        action = Swipe(start_x=100, start_y=2000, end_x=100, end_y=400)
        assert await executor.execute(action) is True
        mock_bridge.dispatch_swipe.assert_awaited_once_with(100, 2000, 100, 400, 1000)


class TestPlatformActions:
    @pytest.mark.asyncio
    async def test_type(self, executor, mock_platform):
        assert await executor.execute(Type(text="hello")) is True
        mock_platform.input_text.assert_awaited_once_with("hello")

    @pytest.mark.asyncio
    async def test_back_and_home(self, executor, mock_platform):
        assert await executor.execute(Back()) is True
        assert await executor.execute(Home()) is True
        mock_platform.press_back.assert_awaited_once()
        mock_platform.press_home.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_result(self, executor, mock_platform):
        mock_platform.press_back.return_value = ExecutionResult.failed("Failed to press key", error="offline")
        assert await executor.execute(Back()) is False

    @pytest.mark.asyncio
    async def test_platform_exception_is_failure(self, executor, mock_platform):
        mock_platform.input_text.side_effect = RuntimeError("device offline")
        assert await executor.execute(Type(text="hello")) is False

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, executor, mock_platform):
        mock_platform.press_home.side_effect = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await executor.execute(Home())


class TestLaunch:
    @pytest.mark.asyncio
    async def test_launch_resolved_app(self, executor, mock_platform):
        assert await executor.execute(Launch(app_name="chrome")) is True
        mock_platform.launch_app.assert_awaited_once_with("com.android.chrome")

    @pytest.mark.asyncio
    async def test_launch_unknown_app(self, executor, mock_platform):
        assert await executor.execute(Launch(app_name="Nonexistent App Name")) is False
        mock_platform.launch_app.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_launch_without_resolver(self, mock_bridge, mock_platform):
        executor = ActionExecutor(mock_bridge, mock_platform, resolver=None, settle_delay=0, launch_delay=0)
        assert await executor.execute(Launch(app_name="Chrome")) is False
        mock_platform.launch_app.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_launch_failure(self, executor, mock_platform):
        mock_platform.launch_app.return_value = ExecutionResult.failed("No launchable activity", error="not found")
        assert await executor.execute(Launch(app_name="Chrome")) is False


class TestControlActions:
    @pytest.mark.asyncio
    async def test_wait(self, executor):
        assert await executor.execute(Wait(duration_ms=10)) is True

    @pytest.mark.asyncio
    async def test_finish(self, executor, mock_bridge, mock_platform):
        assert await executor.execute(Finish(message="done")) is True
        mock_bridge.dispatch_tap.assert_not_awaited()
        mock_platform.press_home.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_error_action(self, executor):
        assert await executor.execute(Error(reason="Failed to parse action")) is False
