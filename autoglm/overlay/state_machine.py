"""
悬浮窗状态机

所有状态变更（编排循环发起的、用户操作发起的）都经过同一把锁串行执行，
迁移前按 TRANSITIONS 校验，非法请求记录日志后忽略
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from .renderer import OverlayRenderer
from .state import (
    Hidden,
    OverlayState,
    RecordingOverlay,
    ReviewOverlay,
    Suspended,
    TaskCompleted,
    Visible,
    is_legal,
    visible_of,
)

# 以下常数针对具体渲染管线调优，可通过配置覆盖
DEFAULT_SETTLE_FRAMES = 2
DEFAULT_SETTLE_MARGIN = 0.016
DEFAULT_FRAME_TIMEOUT = 0.1
DEFAULT_HYSTERESIS = 200
DEFAULT_TOP_MARGIN = 300
DEFAULT_BOTTOM_OFFSET = 20


class OverlayStateMachine:
    """
    悬浮窗状态机

    状态：Hidden / Visible / Suspended / RecordingOverlay / ReviewOverlay / TaskCompleted
    """

    def __init__(
        self,
        renderer: OverlayRenderer,
        settle_frames: int = DEFAULT_SETTLE_FRAMES,
        settle_margin: float = DEFAULT_SETTLE_MARGIN,
        frame_timeout: float = DEFAULT_FRAME_TIMEOUT,
        hysteresis: int = DEFAULT_HYSTERESIS,
        top_margin: int = DEFAULT_TOP_MARGIN,
        bottom_offset: int = DEFAULT_BOTTOM_OFFSET,
    ):
        """
        初始化状态机

        Args:
            renderer: 渲染器（由状态机独占）
            settle_frames: 进入 Suspended 后等待的帧数
            settle_margin: 帧等待之后的额外余量（秒）
            frame_timeout: 单帧回调的最长等待（秒），渲染器无响应时不阻塞
            hysteresis: 避让移动的最小纵向位移（像素）
            top_margin: 移到上半屏时与屏幕顶部的距离换算量
            bottom_offset: 移到下半屏时距底部的偏移
        """
        self._renderer = renderer
        self._state: OverlayState = Hidden()
        self._lock = asyncio.Lock()
        self._user_dismissed = False

        self.settle_frames = settle_frames
        self.settle_margin = settle_margin
        self.frame_timeout = frame_timeout
        self.hysteresis = hysteresis
        self.top_margin = top_margin
        self.bottom_offset = bottom_offset

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def user_dismissed(self) -> bool:
        return self._user_dismissed

    # ========================================
    # 核心迁移
    # ========================================

    async def transition(self, new_state: OverlayState) -> bool:
        """
        请求迁移到新状态

        Args:
            new_state: 目标状态

        Returns:
            迁移是否生效（非法迁移返回 False，状态不变）
        """
        async with self._lock:
            return await self._transition_locked(new_state)

    async def _transition_locked(self, new_state: OverlayState) -> bool:
        old_state = self._state

        if not is_legal(old_state, new_state):
            logger.warning(f"Illegal overlay transition {old_state.kind} -> {new_state.kind}, ignored")
            return False

        if isinstance(old_state, Hidden) and self._user_dismissed:
            logger.debug(f"Overlay dismissed by user, skipping {new_state.kind}")
            return False

        logger.debug(f"Overlay transition: {old_state.kind} -> {new_state.kind}")

        if isinstance(new_state, Suspended):
            self._renderer.collapse()
            self._commit(new_state)
            await self._await_settle()
            return True

        if isinstance(old_state, Suspended):
            self._renderer.expand()

        self._commit(new_state)
        return True

    def _commit(self, state: OverlayState) -> None:
        self._state = state
        self._renderer.render(state)

    async def _await_settle(self) -> None:
        """等待连续若干帧绘制完成，再加固定余量，保证截图中不含悬浮窗"""
        loop = asyncio.get_running_loop()

        for index in range(self.settle_frames):
            frame = loop.create_future()

            def on_frame(timestamp: float, frame=frame) -> None:
                loop.call_soon_threadsafe(_resolve_once, frame, timestamp)

            self._renderer.post_frame_callback(on_frame)
            try:
                await asyncio.wait_for(frame, self.frame_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Overlay frame {index + 1} not acknowledged within {self.frame_timeout}s")

        await asyncio.sleep(self.settle_margin)

    # ========================================
    # 编排循环使用的便捷方法
    # ========================================

    async def show(
        self,
        status_text: str,
        is_running: bool = True,
        stop_handle: Optional[Callable[[], None]] = None,
    ) -> bool:
        """显示悬浮窗（或更新已显示的内容）"""
        return await self.transition(
            Visible(status_text=status_text, is_running=is_running, stop_handle=stop_handle)
        )

    async def suspend(self) -> bool:
        """
        临时隐藏悬浮窗（截图/手势前调用）

        Returns:
            是否进入了 Suspended（没有可见窗口时返回 False）
        """
        async with self._lock:
            if not isinstance(self._state, Visible):
                logger.debug(f"Nothing to suspend (state={self._state.kind})")
                return False
            return await self._transition_locked(Suspended(cached_visible=self._state))

    async def restore(self) -> bool:
        """从 Suspended 恢复为缓存的 Visible（其他状态下不做任何事）"""
        async with self._lock:
            if not isinstance(self._state, Suspended):
                return False
            return await self._transition_locked(self._state.cached_visible)

    async def update_status(self, text: str) -> None:
        """更新状态文本；Suspended 期间更新缓存，恢复时生效"""
        await self._update_visible(status_text=text)

    async def set_running(self, is_running: bool) -> None:
        await self._update_visible(is_running=is_running)

    async def _update_visible(self, **fields) -> None:
        async with self._lock:
            state = self._state
            if isinstance(state, Visible):
                self._commit(state.model_copy(update=fields))
            elif isinstance(state, Suspended):
                self._state = Suspended(cached_visible=state.cached_visible.model_copy(update=fields))
            elif isinstance(state, (RecordingOverlay, ReviewOverlay)):
                self._commit(state.model_copy(update={"underlying": state.underlying.model_copy(update=fields)}))
            elif isinstance(state, TaskCompleted) and "status_text" in fields:
                self._commit(TaskCompleted(status_text=fields["status_text"]))
            else:
                logger.debug(f"Overlay update ignored in state {state.kind}")

    async def complete(self, status_text: str) -> bool:
        """任务结束：展示最终状态文本"""
        async with self._lock:
            state = self._state
            if isinstance(state, Hidden):
                logger.debug("Overlay hidden, skipping completion display")
                return False
            if isinstance(state, Suspended):
                await self._transition_locked(state.cached_visible)
            elif isinstance(state, (RecordingOverlay, ReviewOverlay)):
                await self._transition_locked(state.underlying)
            return await self._transition_locked(TaskCompleted(status_text=status_text))

    async def stop_running(self, status_text: str) -> bool:
        """
        任务异常结束（出错、被停止、步数耗尽）：保持 Visible，隐藏停止按钮并展示最终状态

        Returns:
            是否更新了可见窗口（Hidden 时返回 False）
        """
        async with self._lock:
            state = self._state
            fields = {"status_text": status_text, "is_running": False}
            if isinstance(state, Hidden):
                logger.debug("Overlay hidden, skipping final status")
                return False
            if isinstance(state, TaskCompleted):
                return await self._transition_locked(Visible(**fields))
            if isinstance(state, (RecordingOverlay, ReviewOverlay)):
                self._commit(state.model_copy(update={"underlying": state.underlying.model_copy(update=fields)}))
                return True
            visible = visible_of(state)
            return await self._transition_locked(visible.model_copy(update=fields))

    async def hide(self) -> bool:
        async with self._lock:
            if isinstance(self._state, Hidden):
                return True
            return await self._transition_locked(Hidden())

    def reset_for_new_task(self) -> None:
        """新任务开始时清除用户关闭标记"""
        self._user_dismissed = False

    # ========================================
    # 用户操作（UI 协作方转发）
    # ========================================

    async def dismiss(self) -> bool:
        """用户主动关闭悬浮窗，直到下一个任务前不再自动显示"""
        self._user_dismissed = True
        return await self.hide()

    async def press_stop(self) -> bool:
        """停止按钮：任务运行中时调用停止回调"""
        async with self._lock:
            state = self._state
            handle = state.stop_handle if isinstance(state, Visible) and state.is_running else None

        if handle is None:
            logger.debug(f"Stop pressed with no running task (state={state.kind})")
            return False

        logger.info("Stop pressed on overlay")
        handle()
        return True

    async def start_recording(self) -> bool:
        """开始语音录制：在当前可见内容之上显示录音层"""
        async with self._lock:
            state = self._state
            if isinstance(state, Visible):
                underlying = state
            elif isinstance(state, TaskCompleted):
                underlying = Visible(status_text=state.status_text, is_running=False)
            else:
                logger.warning(f"Cannot start recording from {state.kind}")
                return False
            return await self._transition_locked(RecordingOverlay(underlying=underlying))

    async def start_review(self, text: str) -> bool:
        """录音结束：显示识别结果确认层"""
        async with self._lock:
            state = self._state
            underlying = visible_of(state) if isinstance(state, (Visible, RecordingOverlay)) else None
            if underlying is None:
                logger.warning(f"Cannot start review from {state.kind}")
                return False
            return await self._transition_locked(ReviewOverlay(underlying=underlying, text=text))

    async def dismiss_voice(self) -> bool:
        """关闭录音/确认层，恢复之前的可见状态"""
        async with self._lock:
            state = self._state
            if not isinstance(state, (RecordingOverlay, ReviewOverlay)):
                return False
            return await self._transition_locked(state.underlying)

    # ========================================
    # 位置避让
    # ========================================

    def occupies(self, x: float, y: float) -> bool:
        """悬浮窗当前是否覆盖屏幕上的 (x, y)"""
        if not isinstance(self._state, Visible):
            return False
        bounds = self._renderer.bounds()
        if bounds is None:
            return False
        left, top, right, bottom = bounds
        return left <= x <= right and top <= y <= bottom

    async def avoid_point(self, x: float, y: float, screen_height: int) -> bool:
        """
        目标点被悬浮窗遮挡时，把悬浮窗移到另一半屏幕

        Returns:
            是否移动了窗口
        """
        async with self._lock:
            if not self.occupies(x, y):
                return False

            if y > screen_height / 2:
                new_offset = screen_height - self.top_margin
            else:
                new_offset = self.bottom_offset

            current = self._renderer.offset
            if abs(current - new_offset) <= self.hysteresis:
                return False

            self._renderer.move_to(new_offset)
            logger.debug(f"Overlay moved away from ({x}, {y}): offset {current} -> {new_offset}")
            return True


def _resolve_once(future: asyncio.Future, value) -> None:
    if not future.done():
        future.set_result(value)
