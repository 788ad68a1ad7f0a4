"""
动作执行器

负责把 ActionCommand 落到设备上：手势走 GestureBridge，按键/应用/文本走 DevicePlatform
"""

import asyncio
import time
from typing import Optional

from loguru import logger

from ..apps import AppNameResolver
from ..device import DevicePlatform, ExecutionResult, GestureBridge
from ..models import (
    ActionCommand,
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
from ..utils.errors import ActionDispatchFailure, UnresolvedAppName

DOUBLE_TAP_INTERVAL = 0.15
LAUNCH_SETTLE_DELAY = 2.0


class ActionExecutor:
    """
    动作执行器（执行协作方）

    execute 永远返回 bool：平台异常被记录并视为失败
    """

    def __init__(
        self,
        bridge: GestureBridge,
        platform: DevicePlatform,
        resolver: Optional[AppNameResolver] = None,
        settle_delay: float = 1.0,
        launch_delay: float = LAUNCH_SETTLE_DELAY,
    ):
        """
        初始化动作执行器

        Args:
            bridge: 手势桥接
            platform: 设备平台
            resolver: 应用名称解析器（为空时 Launch 一律失败）
            settle_delay: 动作执行后等待界面稳定的时间（秒）
            launch_delay: 启动应用后的等待时间（秒）
        """
        self.bridge = bridge
        self.platform = platform
        self.resolver = resolver
        self.settle_delay = settle_delay
        self.launch_delay = launch_delay

    async def execute(self, action: ActionCommand) -> bool:
        """
        执行动作

        Args:
            action: 要执行的动作

        Returns:
            是否成功
        """
        logger.info(f"Executing action: {action!r}")
        start_time = time.time()

        try:
            success = await self._dispatch(action)
        except asyncio.CancelledError:
            raise
        except ActionDispatchFailure as e:
            logger.error(f"Action failed: {e}")
            return False
        except Exception as e:
            logger.error(f"Action raised: {action.type.value} - {e}")
            return False

        logger.info(
            f"Action {action.type.value} {'succeeded' if success else 'failed'} "
            f"({time.time() - start_time:.2f}s)"
        )
        return success

    async def _dispatch(self, action: ActionCommand) -> bool:
        if isinstance(action, Tap):
            success = await self.bridge.dispatch_tap(action.x, action.y)
            await self._settle()
            return success

        if isinstance(action, DoubleTap):
            first = await self.bridge.dispatch_tap(action.x, action.y)
            await asyncio.sleep(DOUBLE_TAP_INTERVAL)
            second = await self.bridge.dispatch_tap(action.x, action.y)
            await self._settle()
            return first and second

        if isinstance(action, LongPress):
            success = await self.bridge.long_press(action.x, action.y, action.duration_ms)
            await self._settle()
            return success

        if isinstance(action, Swipe):
            success = await self.bridge.dispatch_swipe(
                action.start_x, action.start_y, action.end_x, action.end_y, action.duration_ms
            )
            await self._settle()
            return success

        if isinstance(action, Type):
            result = await self.platform.input_text(action.text)
            await self._settle()
            return self._check(result)

        if isinstance(action, Launch):
            return await self._launch(action.app_name)

        if isinstance(action, Back):
            result = await self.platform.press_back()
            await self._settle()
            return self._check(result)

        if isinstance(action, Home):
            result = await self.platform.press_home()
            await self._settle()
            return self._check(result)

        if isinstance(action, Wait):
            await asyncio.sleep(action.duration_ms / 1000)
            return True

        if isinstance(action, Finish):
            logger.info(f"Task finished: {action.message}")
            return True

        if isinstance(action, Error):
            logger.error(f"Error action: {action.reason}")
            return False

        logger.error(f"Unsupported action type: {action.type}")
        return False

    async def _launch(self, app_name: str) -> bool:
        if self.resolver is None:
            raise UnresolvedAppName(app_name)

        package = await asyncio.to_thread(self.resolver.resolve, app_name)
        if package is None:
            raise UnresolvedAppName(app_name)

        logger.debug(f"Launching {app_name} -> {package}")
        result = await self.platform.launch_app(package)
        if not self._check(result):
            return False

        await asyncio.sleep(self.launch_delay)
        return True

    async def _settle(self) -> None:
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

    @staticmethod
    def _check(result: ExecutionResult) -> bool:
        if not result.success:
            logger.warning(f"{result.operation or 'operation'} failed: {result.message} ({result.error})")
        return result.success
