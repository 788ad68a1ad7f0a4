"""
ADB 设备平台

基于 adbutils 的 DevicePlatform 实现。阻塞调用在工作线程中执行，
回调也从工作线程发出
"""

import asyncio
import base64
import io
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import requests
from adbutils import adb
from loguru import logger
from PIL import Image

from .execution_result import ExecutionResult
from .platform import (
    ERROR_INTERNAL,
    DevicePlatform,
    GestureStroke,
    ScreenshotFailure,
    ScreenshotSuccess,
)

PORTAL_DEFAULT_TCP_PORT = 8080
PORTAL_IME = "com.droidrun.portal/.DroidrunKeyboardIME"

KEYCODE_HOME = 3
KEYCODE_BACK = 4

# 单点且不超过该时长的笔画按点击处理
TAP_MAX_DURATION_MS = 200


class AdbPlatform(DevicePlatform):
    """
    ADB 设备平台

    - 截图：adb screencap（或 Portal TCP 接口）
    - 手势：input tap / input swipe
    - 文本：Portal 键盘（base64）
    """

    def __init__(
        self,
        serial: Optional[str] = None,
        use_tcp: bool = False,
        remote_tcp_port: int = PORTAL_DEFAULT_TCP_PORT,
        setup_keyboard: bool = True,
    ) -> None:
        """
        初始化 ADB 平台

        Args:
            serial: 设备序列号（None 表示使用默认设备）
            use_tcp: 是否通过 Portal TCP 接口截图/输入
            remote_tcp_port: Portal TCP 端口
            setup_keyboard: 是否把 Portal 键盘设为默认输入法
        """
        self.device = adb.device(serial=serial)
        self.use_tcp = use_tcp
        self.remote_tcp_port = remote_tcp_port
        self.tcp_forwarded = False
        self.tcp_base_url: Optional[str] = None

        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="adb-platform")
        self._screen_size: Optional[Tuple[int, int]] = None

        logger.info(f"AdbPlatform initialized (serial={serial}, use_tcp={use_tcp})")

        if setup_keyboard:
            self._setup_keyboard()
        if use_tcp:
            self._setup_tcp_forward()

    def _setup_keyboard(self) -> bool:
        """设置 Portal 键盘为默认输入法"""
        try:
            self.device.shell(f"ime enable {PORTAL_IME}")
            self.device.shell(f"ime set {PORTAL_IME}")
            logger.debug("Portal keyboard setup completed")
            return True
        except Exception as e:
            logger.error(f"Failed to setup Portal keyboard: {e}")
            return False

    def _setup_tcp_forward(self) -> bool:
        """设置 ADB TCP 端口转发"""
        try:
            local_port = self.device.forward_port(self.remote_tcp_port)
            self.tcp_base_url = f"http://localhost:{local_port}"

            response = requests.get(f"{self.tcp_base_url}/ping", timeout=5)
            if response.status_code == 200:
                self.tcp_forwarded = True
                logger.debug(f"TCP forwarding ready: {self.tcp_base_url}")
                return True

            logger.warning(f"TCP ping failed: {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Failed to setup TCP forwarding: {e}")
            self.tcp_forwarded = False
            return False

    def close(self) -> None:
        self._worker.shutdown(wait=False, cancel_futures=True)

    # ========================================
    # 回调式原语
    # ========================================

    def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is None:
            width, height = self.device.window_size()
            self._screen_size = (width, height)
        return self._screen_size

    def take_screenshot(self, on_success: ScreenshotSuccess, on_failure: ScreenshotFailure) -> None:
        def job() -> None:
            try:
                image = self._screenshot_sync()
            except Exception as e:
                logger.error(f"Failed to take screenshot: {e}")
                on_failure(ERROR_INTERNAL)
                return
            on_success(image)

        self._worker.submit(job)

    def _screenshot_sync(self) -> Image.Image:
        if self.use_tcp and self.tcp_forwarded:
            response = requests.get(f"{self.tcp_base_url}/screenshot?hideOverlay=true", timeout=10)
            if response.status_code != 200:
                raise RuntimeError(f"HTTP {response.status_code}")

            payload = response.json()
            if payload.get("status") != "success" or "data" not in payload:
                raise RuntimeError(f"Screenshot error: {payload.get('error', 'Unknown error')}")

            logger.debug("Screenshot taken via TCP")
            return Image.open(io.BytesIO(base64.b64decode(payload["data"])))

        logger.debug("Screenshot taken via ADB")
        return self.device.screenshot()

    def dispatch_gesture(
        self,
        strokes: List[GestureStroke],
        on_completed: Callable[[], None],
        on_cancelled: Callable[[], None],
    ) -> bool:
        if not strokes:
            return False

        def job() -> None:
            started = time.monotonic()
            try:
                for stroke in sorted(strokes, key=lambda s: s.start_ms):
                    wait = stroke.start_ms / 1000 - (time.monotonic() - started)
                    if wait > 0:
                        time.sleep(wait)
                    self._perform_stroke(stroke)
            except Exception as e:
                logger.error(f"Gesture failed: {e}")
                on_cancelled()
                return
            on_completed()

        self._worker.submit(job)
        return True

    def _perform_stroke(self, stroke: GestureStroke) -> None:
        (x1, y1), (x2, y2) = stroke.start, stroke.end
        if (x1, y1) == (x2, y2) and stroke.duration_ms <= TAP_MAX_DURATION_MS:
            self.device.click(int(x1), int(y1))
            logger.debug(f"Tapped at ({x1}, {y1})")
        else:
            self.device.swipe(int(x1), int(y1), int(x2), int(y2), stroke.duration_ms / 1000)
            logger.debug(f"Swiped from ({x1}, {y1}) to ({x2}, {y2}) in {stroke.duration_ms}ms")

    # ========================================
    # 异步辅助方法
    # ========================================

    async def press_back(self) -> ExecutionResult:
        return await self.press_key(KEYCODE_BACK, "BACK")

    async def press_home(self) -> ExecutionResult:
        return await self.press_key(KEYCODE_HOME, "HOME")

    async def press_key(self, keycode: int, key_name: Optional[str] = None) -> ExecutionResult:
        """
        按键操作

        Raises:
            RuntimeError: 按键失败时抛出异常
        """
        start_time = time.time()
        key_display = key_name or str(keycode)

        try:
            await asyncio.to_thread(self.device.keyevent, keycode)
        except Exception as e:
            logger.error(f"Failed to press key {key_display}: {e}")
            raise RuntimeError(f"Press key failed: {e}") from e

        logger.debug(f"Pressed key {key_display}")
        return ExecutionResult.ok(
            message=f"Pressed key {key_display}",
            operation="press_key",
            data={"keycode": keycode},
            duration_ms=int((time.time() - start_time) * 1000),
        )

    async def launch_app(self, package: str) -> ExecutionResult:
        """
        启动应用（自动查找启动 Activity）

        Raises:
            RuntimeError: 启动失败时抛出异常
        """
        start_time = time.time()

        try:
            output = await asyncio.to_thread(
                self.device.shell, f"cmd package resolve-activity --brief {package}"
            )
            lines = output.strip().splitlines()
            if len(lines) < 2 or "/" not in lines[-1]:
                return ExecutionResult.failed(
                    message=f"No launch activity for {package}",
                    error=output.strip(),
                    operation="start_app",
                )
            activity = lines[-1].split("/", 1)[1]

            await asyncio.to_thread(self.device.app_start, package, activity)

        except Exception as e:
            logger.error(f"Failed to start app {package}: {e}")
            raise RuntimeError(f"Start app failed: {e}") from e

        logger.debug(f"Started app: {package}/{activity}")
        return ExecutionResult.ok(
            message=f"App started: {package}",
            operation="start_app",
            data={"package": package, "activity": activity},
            duration_ms=int((time.time() - start_time) * 1000),
        )

    async def input_text(self, text: str) -> ExecutionResult:
        """
        输入文本（Portal 键盘，base64 编码）

        Raises:
            RuntimeError: 输入失败时抛出异常
        """
        start_time = time.time()
        encoded_text = base64.b64encode(text.encode()).decode()

        try:
            if self.use_tcp and self.tcp_forwarded:
                response = await asyncio.to_thread(
                    requests.post,
                    f"{self.tcp_base_url}/keyboard/input",
                    json={"base64_text": encoded_text},
                    headers={"Content-Type": "application/json"},
                    timeout=10,
                )
                if response.status_code != 200:
                    raise RuntimeError(f"HTTP {response.status_code}: {response.text}")
            else:
                cmd = (
                    'content insert --uri "content://com.droidrun.portal/keyboard/input" '
                    f'--bind base64_text:s:"{encoded_text}"'
                )
                await asyncio.to_thread(self.device.shell, cmd)

        except Exception as e:
            logger.error(f"Failed to input text: {e}")
            raise RuntimeError(f"Input text failed: {e}") from e

        logger.debug(f"Text input completed: {text[:50]}")
        return ExecutionResult.ok(
            message=f"Input text: {text[:50]}{'...' if len(text) > 50 else ''}",
            operation="input_text",
            data={"length": len(text)},
            duration_ms=int((time.time() - start_time) * 1000),
        )

    async def current_app(self) -> Optional[str]:
        try:
            info = await asyncio.to_thread(self.device.app_current)
        except Exception as e:
            logger.warning(f"Failed to query current app: {e}")
            return None
        return info.package or None

    def list_launcher_packages(self) -> List[str]:
        """列出所有带桌面入口的应用包名"""
        output = self.device.shell(
            "cmd package query-activities --brief "
            "-a android.intent.action.MAIN -c android.intent.category.LAUNCHER"
        )
        packages = []
        for line in output.splitlines():
            line = line.strip()
            if "/" not in line:
                continue
            package = line.split("/", 1)[0]
            if package not in packages:
                packages.append(package)
        return packages
