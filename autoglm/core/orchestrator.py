"""
任务编排器

感知 -> 决策 -> 执行 循环：截图、请求决策服务、解析并执行动作，直到完成、出错、
被用户停止或达到步数上限
"""

import asyncio
import time
from typing import Optional

from loguru import logger

from ..device import DevicePlatform, GestureBridge
from ..execution import ActionExecutor, parse_action, parse_response_parts
from ..llm import DecisionClient, first_step_prompt, get_system_prompt, next_step_prompt
from ..models import (
    DEFAULT_MAX_STEPS,
    Finish,
    HistoryTurn,
    TaskOutcome,
    TaskResult,
    TaskSession,
    TaskStatus,
)
from ..overlay import OverlayStateMachine
from ..storage import NullRecorder, TaskRecorder
from ..utils.errors import (
    AutomationError,
    CaptureFailure,
    CaptureTimeout,
    DecisionError,
    ExecutorUnavailable,
    TaskAlreadyRunningError,
)
from .status import (
    LAST_ACTION_FAILED,
    STATUS_STARTING,
    STATUS_THINKING,
    describe_action,
    terminal_status,
)


class TaskOrchestrator:
    """
    任务编排器

    同一时间只运行一个任务；会话由编排器独占，结束时交给记录器归档
    """

    def __init__(
        self,
        bridge: GestureBridge,
        overlay: OverlayStateMachine,
        decision: DecisionClient,
        executor: Optional[ActionExecutor],
        recorder: Optional[TaskRecorder] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        capture_timeout: float = 5.0,
        step_delay: float = 2.0,
        platform: Optional[DevicePlatform] = None,
        go_home: bool = False,
        system_prompt: Optional[str] = None,
    ):
        """
        初始化编排器

        Args:
            bridge: 截图/手势桥接
            overlay: 悬浮窗状态机
            decision: 决策服务客户端
            executor: 动作执行器（为空时第一次执行动作即致命错误）
            recorder: 任务记录器
            max_steps: 最大步数
            capture_timeout: 截图超时（秒）
            step_delay: 步骤间等待（秒），可被停止操作打断
            platform: 设备平台（用于查询前台应用、回到桌面）
            go_home: 任务开始前是否先回到桌面
            system_prompt: 自定义系统提示词（默认带当天日期的内置提示词）
        """
        self.bridge = bridge
        self.overlay = overlay
        self.decision = decision
        self.executor = executor
        self.recorder = recorder or NullRecorder()
        self.max_steps = max_steps
        self.capture_timeout = capture_timeout
        self.step_delay = step_delay
        self.platform = platform
        self.go_home = go_home
        self.system_prompt = system_prompt

        self._status = TaskStatus.IDLE
        self._session: Optional[TaskSession] = None
        self._task: Optional[asyncio.Task] = None
        self._finish_message: Optional[str] = None
        self.last_result: Optional[TaskResult] = None

    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def session(self) -> Optional[TaskSession]:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._status == TaskStatus.RUNNING

    # ========================================
    # 生命周期
    # ========================================

    async def start(self, goal: str) -> TaskOutcome:
        """
        运行一个任务直到结束

        Args:
            goal: 自然语言任务目标

        Returns:
            终止状态

        Raises:
            TaskAlreadyRunningError: 已有任务在运行
        """
        if self.is_running:
            raise TaskAlreadyRunningError("A task is already running")

        session = TaskSession(goal=goal, max_steps=self.max_steps)
        self._session = session
        self._status = TaskStatus.RUNNING
        self._finish_message = None

        logger.info("=" * 60)
        logger.info(f"Task {session.id} started: {goal}")
        logger.info("=" * 60)

        self.overlay.reset_for_new_task()
        await self.overlay.show(STATUS_STARTING, is_running=True, stop_handle=self.cancel)
        self._safe_record(self.recorder.start, session)

        self._task = asyncio.create_task(self._run(session))
        outer_cancelled = False

        try:
            outcome = await self._task
        except asyncio.CancelledError:
            outcome = TaskOutcome.USER_STOPPED
            outer_cancelled = not session.cancelled
        except AutomationError as e:
            outcome = TaskOutcome.ERROR
            session.error = str(e)
            logger.error(f"Task {session.id} failed: {e}")
        except Exception as e:
            outcome = TaskOutcome.ERROR
            session.error = f"Error: {e}"
            logger.exception(f"Task {session.id} crashed")

        await asyncio.shield(self._finalize(session, outcome))

        if outer_cancelled:
            raise asyncio.CancelledError()
        return outcome

    def cancel(self) -> None:
        """请求停止当前任务（悬浮窗停止按钮回调）"""
        session = self._session
        if session is None or not self.is_running:
            logger.debug("Cancel requested with no running task")
            return

        logger.info(f"Stop requested for task {session.id}")
        session.cancel_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _finalize(self, session: TaskSession, outcome: TaskOutcome) -> None:
        # 等内部任务完成自身的清理（悬浮窗恢复等）
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])

        session.outcome = outcome
        session.finished_at = time.time()
        self._status = TaskStatus.from_outcome(outcome)

        final_status = terminal_status(outcome, session.error)
        if outcome == TaskOutcome.COMPLETED:
            await self.overlay.complete(final_status)
        else:
            await self.overlay.stop_running(final_status)

        result = TaskResult(
            session_id=session.id,
            goal=session.goal,
            outcome=outcome,
            steps=session.step,
            error=session.error,
            message=self._finish_message,
            duration_s=session.duration,
        )
        self.last_result = result
        self._safe_record(self.recorder.finish, result)

        logger.info("=" * 60)
        logger.info(f"Task {session.id} ended: {outcome.value}")
        logger.info(f"Steps: {session.step}/{session.max_steps}, duration: {session.duration:.2f}s")
        if session.error:
            logger.info(f"Error: {session.error}")
        logger.info("=" * 60)

    # ========================================
    # 主循环
    # ========================================

    async def _run(self, session: TaskSession) -> TaskOutcome:
        self._append(session, HistoryTurn.system(self.system_prompt or get_system_prompt()))

        if self.go_home and self.platform is not None:
            await self.platform.press_home()

        while session.step < session.max_steps:
            session.step += 1
            logger.info(f"[Task {session.id}] Step {session.step}/{session.max_steps}")

            finished = await self._step(session)
            if finished:
                return TaskOutcome.COMPLETED

            session.history.prune_images()
            await self._delay(session)

        logger.warning(f"Task {session.id} reached max steps ({session.max_steps})")
        return TaskOutcome.MAX_STEPS_REACHED

    async def _step(self, session: TaskSession) -> bool:
        """
        执行一步

        Returns:
            任务是否已完成（Finish）
        """
        await self.overlay.update_status(STATUS_THINKING)

        # 1. 感知
        image = await self.bridge.capture(timeout=self.capture_timeout)
        if image is None:
            if isinstance(self.bridge.last_capture_error, CaptureTimeout):
                raise CaptureTimeout("Error: Screenshot timed out")
            raise CaptureFailure("Error: Screenshot failed")

        current_app = await self._current_app()
        if session.step == 1:
            prompt = first_step_prompt(session.goal, current_app)
        else:
            prompt = next_step_prompt(current_app)
        self._append(session, HistoryTurn.user(prompt, image))

        # 2. 决策
        response = await self.decision.decide(session.history)
        if response.startswith("Error"):
            raise DecisionError(response)

        thinking, action_text = parse_response_parts(response)
        self._append(session, HistoryTurn.assistant(f"<think>{thinking}</think><answer>{action_text}</answer>"))
        logger.info(f"Thinking: {thinking}")
        logger.info(f"Action: {action_text}")

        width, height = self.bridge.screen_size()
        action = parse_action(response, width, height)
        await self.overlay.update_status(describe_action(action))

        # 3. 执行
        if self.executor is None:
            raise ExecutorUnavailable("Error: Action executor is not available")

        self._check_cancelled(session)
        success = await self.executor.execute(action)
        self._check_cancelled(session)

        if isinstance(action, Finish):
            self._finish_message = action.message
            return True

        if not success:
            logger.warning(f"Action failed at step {session.step}, asking for correction")
            self._append(session, HistoryTurn.user(LAST_ACTION_FAILED))

        return False

    async def _delay(self, session: TaskSession) -> None:
        """步骤间等待，停止请求会立即打断"""
        try:
            await asyncio.wait_for(session.cancel_event.wait(), self.step_delay)
        except asyncio.TimeoutError:
            pass
        self._check_cancelled(session)

    async def _current_app(self) -> Optional[str]:
        if self.platform is None:
            return None
        return await self.platform.current_app()

    def _append(self, session: TaskSession, turn: HistoryTurn) -> None:
        session.history.append(turn)
        self._safe_record(self.recorder.record_turn, turn)

    @staticmethod
    def _check_cancelled(session: TaskSession) -> None:
        if session.cancelled:
            raise asyncio.CancelledError()

    @staticmethod
    def _safe_record(method, *args) -> None:
        # 记录失败不影响任务
        try:
            method(*args)
        except Exception as e:
            logger.warning(f"Task recorder failed: {e}")
