"""
任务记录

把每个任务的对话轮次与结果写入本地目录，供事后查看。核心循环不会读回这些记录
"""

import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from ..models import HistoryTurn, TaskResult, TaskSession

JPEG_QUALITY = 70


class TaskRecorder(ABC):
    """任务记录接口（持久化协作方）"""

    @abstractmethod
    def start(self, session: TaskSession) -> None:
        """任务开始"""

    @abstractmethod
    def record_turn(self, turn: HistoryTurn) -> None:
        """追加一个对话轮次"""

    @abstractmethod
    def finish(self, result: TaskResult) -> None:
        """任务结束"""


class NullRecorder(TaskRecorder):
    """不记录"""

    def start(self, session: TaskSession) -> None:
        pass

    def record_turn(self, turn: HistoryTurn) -> None:
        pass

    def finish(self, result: TaskResult) -> None:
        pass


class JsonlTaskRecorder(TaskRecorder):
    """
    JSONL 记录器

    目录结构：
        <directory>/<session_id>/turns.jsonl      每行一个轮次，最后一行为结果摘要
        <directory>/<session_id>/step_001.jpg     截图
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.session_dir: Optional[Path] = None
        self._image_count = 0

    @property
    def log_path(self) -> Optional[Path]:
        return self.session_dir / "turns.jsonl" if self.session_dir else None

    def start(self, session: TaskSession) -> None:
        self.session_dir = self.directory / session.id
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self._image_count = 0

        self._write(
            {
                "event": "start",
                "session_id": session.id,
                "goal": session.goal,
                "max_steps": session.max_steps,
                "timestamp": session.started_at,
            }
        )
        logger.debug(f"Recording task {session.id} to {self.session_dir}")

    def record_turn(self, turn: HistoryTurn) -> None:
        if self.session_dir is None:
            logger.warning("record_turn called before start, ignored")
            return

        images = []
        for item in turn.content:
            if item.is_image:
                self._image_count += 1
                name = f"step_{self._image_count:03d}.jpg"
                image = item.image if item.image.mode == "RGB" else item.image.convert("RGB")
                image.save(self.session_dir / name, format="JPEG", quality=JPEG_QUALITY)
                images.append(name)

        self._write(
            {
                "event": "turn",
                "role": turn.role.value,
                "text": turn.text,
                "images": images,
                "timestamp": time.time(),
            }
        )

    def finish(self, result: TaskResult) -> None:
        if self.session_dir is None:
            logger.warning("finish called before start, ignored")
            return

        self._write({"event": "finish", **result.model_dump(mode="json")})
        logger.info(f"Task record saved: {self.log_path}")

    def _write(self, record: Dict[str, Any]) -> None:
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
