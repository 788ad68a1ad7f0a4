"""
任务编排器测试

用 FakePlatform + 无界面悬浮窗跑完整循环，决策服务用 AsyncMock 代替
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from autoglm.apps import AppNameResolver, StaticAppInventory
from autoglm.core import TaskOrchestrator
from autoglm.core.status import LAST_ACTION_FAILED
from autoglm.execution import ActionExecutor
from autoglm.models import Role, TaskOutcome, TaskResult, TaskStatus
from autoglm.overlay.state import Suspended, TaskCompleted, Visible
from autoglm.storage import TaskRecorder
from autoglm.utils.errors import TaskAlreadyRunningError

LAUNCH_CHROME = '<think>Chrome is not open yet</think><answer>do(action="Launch", app="Chrome")</answer>'
FINISH = '<think>Chrome is open</think><answer>finish(message="Chrome is open")</answer>'
BACK = '<think>Go back</think><answer>do(action="Back")</answer>'


@pytest.fixture
def decision():
    decision = Mock()
    decision.decide = AsyncMock(return_value=BACK)
    return decision


@pytest.fixture
def executor(bridge, platform):
    resolver = AppNameResolver(
        StaticAppInventory({"Chrome": "com.android.chrome", "Settings": "com.android.settings"})
    )
    return ActionExecutor(bridge, platform, resolver, settle_delay=0, launch_delay=0)


@pytest.fixture
def recorder():
    return Mock(spec=TaskRecorder)


@pytest.fixture
def orchestrator(bridge, overlay, decision, executor, recorder, platform):
    return TaskOrchestrator(
        bridge=bridge,
        overlay=overlay,
        decision=decision,
        executor=executor,
        recorder=recorder,
        max_steps=20,
        step_delay=0,
        capture_timeout=1.0,
        platform=platform,
    )


async def _wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def _assert_final_visible(overlay, status_text):
    # 非正常结束时悬浮窗保持可见，只是不再显示停止按钮
    state = overlay.state
    assert isinstance(state, Visible)
    assert state.status_text == status_text
    assert state.is_running is False


class TestCompletion:
    @pytest.mark.asyncio
    async def test_open_chrome(self, orchestrator, decision, platform, overlay):
        decision.decide.side_effect = [LAUNCH_CHROME, FINISH]

        outcome = await orchestrator.start("Open Chrome")

        assert outcome == TaskOutcome.COMPLETED
        assert orchestrator.status == TaskStatus.COMPLETED
        assert orchestrator.session.step == 2
        assert platform.launched == ["com.android.chrome"]
        assert overlay.state == TaskCompleted(status_text="Task finished")
        assert orchestrator.last_result.message == "Chrome is open"

    @pytest.mark.asyncio
    async def test_history_shape(self, orchestrator, decision):
        decision.decide.side_effect = [LAUNCH_CHROME, FINISH]

        await orchestrator.start("Open Chrome")

        history = orchestrator.session.history
        assert [turn.role for turn in history] == [
            Role.SYSTEM,
            Role.USER,
            Role.ASSISTANT,
            Role.USER,
            Role.ASSISTANT,
        ]
        assert history[1].text.startswith("Open Chrome\n\n")
        assert history[3].text.startswith("** Screen Info **")
        assert history[2].text == (
            '<think>Chrome is not open yet</think><answer>do(action="Launch", app="Chrome")</answer>'
        )
        # 只有最新截图保留图片
        assert history.image_count == 1
        assert history[3].has_image

    @pytest.mark.asyncio
    async def test_recorder_receives_turns_and_result(self, orchestrator, decision, recorder):
        decision.decide.side_effect = [LAUNCH_CHROME, FINISH]

        await orchestrator.start("Open Chrome")

        recorder.start.assert_called_once_with(orchestrator.session)
        assert recorder.record_turn.call_count == 5
        (result,), _ = recorder.finish.call_args
        assert isinstance(result, TaskResult)
        assert result.outcome == TaskOutcome.COMPLETED
        assert result.steps == 2

    @pytest.mark.asyncio
    async def test_go_home_before_first_step(self, bridge, overlay, decision, executor, platform):
        decision.decide.return_value = FINISH
        orchestrator = TaskOrchestrator(
            bridge, overlay, decision, executor, step_delay=0, platform=platform, go_home=True
        )

        await orchestrator.start("Open Chrome")

        assert platform.keys == ["home"]


class TestStepLimit:
    @pytest.mark.asyncio
    async def test_stops_after_max_steps(self, orchestrator, decision, platform, overlay):
        outcome = await orchestrator.start("Keep going back")

        assert outcome == TaskOutcome.MAX_STEPS_REACHED
        assert orchestrator.session.step == 20
        assert decision.decide.await_count == 20
        assert platform.keys == ["back"] * 20
        _assert_final_visible(overlay, "Reached maximum steps")
        # 每步结束后清空图片
        assert orchestrator.session.history.image_count == 0


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_response_is_fatal(self, orchestrator, decision, platform, overlay):
        decision.decide.return_value = "Error: 401 invalid api key"

        outcome = await orchestrator.start("Open Chrome")

        assert outcome == TaskOutcome.ERROR
        assert orchestrator.session.step == 1
        assert orchestrator.session.error == "Error: 401 invalid api key"
        _assert_final_visible(overlay, "Error: 401 invalid api key")
        assert platform.gestures == []
        assert platform.keys == []

    @pytest.mark.asyncio
    async def test_screenshot_failure_is_fatal(self, orchestrator, decision, platform, overlay):
        platform.screenshot_mode = "fail"

        outcome = await orchestrator.start("Open Chrome")

        assert outcome == TaskOutcome.ERROR
        assert orchestrator.session.error == "Error: Screenshot failed"
        decision.decide.assert_not_awaited()
        assert not isinstance(overlay.state, Suspended)

    @pytest.mark.asyncio
    async def test_screenshot_timeout_is_fatal(self, orchestrator, platform, overlay):
        platform.screenshot_mode = "hang"
        orchestrator.capture_timeout = 0.05

        outcome = await orchestrator.start("Open Chrome")

        assert outcome == TaskOutcome.ERROR
        assert orchestrator.session.error == "Error: Screenshot timed out"
        _assert_final_visible(overlay, "Error: Screenshot timed out")

    @pytest.mark.asyncio
    async def test_missing_executor_is_fatal(self, bridge, overlay, decision, platform):
        orchestrator = TaskOrchestrator(bridge, overlay, decision, executor=None, step_delay=0, platform=platform)

        outcome = await orchestrator.start("Open Chrome")

        assert outcome == TaskOutcome.ERROR
        assert orchestrator.session.error == "Error: Action executor is not available"

    @pytest.mark.asyncio
    async def test_failed_action_injects_correction(self, orchestrator, decision, platform):
        decision.decide.side_effect = [
            '<think>Open it</think><answer>do(action="Launch", app="Nonexistent App Name")</answer>',
            FINISH,
        ]

        outcome = await orchestrator.start("Open the app")

        assert outcome == TaskOutcome.COMPLETED
        assert platform.launched == []
        history = orchestrator.session.history
        corrections = [turn for turn in history if turn.text == LAST_ACTION_FAILED]
        assert len(corrections) == 1
        assert corrections[0].role == Role.USER

    @pytest.mark.asyncio
    async def test_unparseable_action_is_recoverable(self, orchestrator, decision):
        decision.decide.side_effect = ["I have no idea", FINISH]

        assert await orchestrator.start("Open Chrome") == TaskOutcome.COMPLETED
        assert orchestrator.session.step == 2

    @pytest.mark.asyncio
    async def test_recorder_failure_does_not_break_task(self, orchestrator, decision, recorder):
        recorder.record_turn.side_effect = OSError("disk full")
        decision.decide.return_value = FINISH

        assert await orchestrator.start("Open Chrome") == TaskOutcome.COMPLETED


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_during_capture(self, orchestrator, platform, overlay, renderer):
        platform.screenshot_mode = "hang"
        orchestrator.capture_timeout = 10.0

        task = asyncio.create_task(orchestrator.start("Open Chrome"))
        await _wait_until(lambda: platform.screenshots == 1)
        orchestrator.cancel()

        assert await task == TaskOutcome.USER_STOPPED
        assert orchestrator.status == TaskStatus.USER_STOPPED
        _assert_final_visible(overlay, "Stopped")
        assert renderer.collapsed is False

    @pytest.mark.asyncio
    async def test_stop_button_interrupts_step_delay(self, orchestrator, platform, overlay):
        orchestrator.step_delay = 30.0

        task = asyncio.create_task(orchestrator.start("Keep going back"))
        await _wait_until(lambda: platform.keys == ["back"])
        await _wait_until(lambda: getattr(overlay.state, "stop_handle", None) is not None)

        assert await overlay.press_stop() is True
        assert await asyncio.wait_for(task, 2.0) == TaskOutcome.USER_STOPPED
        assert orchestrator.session.step == 1

    @pytest.mark.asyncio
    async def test_outer_cancellation_finalizes_and_propagates(self, orchestrator, platform, overlay):
        platform.screenshot_mode = "hang"
        orchestrator.capture_timeout = 10.0

        task = asyncio.create_task(orchestrator.start("Open Chrome"))
        await _wait_until(lambda: platform.screenshots == 1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert orchestrator.status == TaskStatus.USER_STOPPED
        _assert_final_visible(overlay, "Stopped")

    @pytest.mark.asyncio
    async def test_only_one_task_at_a_time(self, orchestrator, platform):
        platform.screenshot_mode = "hang"
        orchestrator.capture_timeout = 10.0

        task = asyncio.create_task(orchestrator.start("First"))
        await _wait_until(lambda: platform.screenshots == 1)

        with pytest.raises(TaskAlreadyRunningError):
            await orchestrator.start("Second")

        orchestrator.cancel()
        assert await task == TaskOutcome.USER_STOPPED

    @pytest.mark.asyncio
    async def test_cancel_without_task_is_noop(self, orchestrator):
        orchestrator.cancel()
        assert orchestrator.status == TaskStatus.IDLE
