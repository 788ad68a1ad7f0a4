"""
对话历史模型

决策服务的输入：按顺序排列的 system / user / assistant 轮次
"""

import base64
import io
from enum import Enum
from typing import Any, Dict, List, Optional

from PIL import Image
from pydantic import BaseModel, Field

# 发送给模型前的图片限制
MAX_IMAGE_DIMENSION = 1024
JPEG_QUALITY = 70


class Role(str, Enum):
    """轮次角色"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ContentItem(BaseModel):
    """单个内容片段：文本或图片"""

    text: Optional[str] = Field(None, description="文本内容")
    image: Optional[Image.Image] = Field(None, description="截图")

    class Config:
        arbitrary_types_allowed = True

    @property
    def is_image(self) -> bool:
        return self.image is not None


class HistoryTurn(BaseModel):
    """
    对话轮次

    content 为文本和/或图片片段
    """

    role: Role
    content: List[ContentItem] = Field(default_factory=list)

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def system(cls, text: str) -> "HistoryTurn":
        return cls(role=Role.SYSTEM, content=[ContentItem(text=text)])

    @classmethod
    def user(cls, text: str, image: Optional[Image.Image] = None) -> "HistoryTurn":
        items = [ContentItem(text=text)]
        if image is not None:
            items.append(ContentItem(image=image))
        return cls(role=Role.USER, content=items)

    @classmethod
    def assistant(cls, text: str) -> "HistoryTurn":
        return cls(role=Role.ASSISTANT, content=[ContentItem(text=text)])

    @property
    def text(self) -> str:
        """全部文本片段拼接"""
        return "\n".join(item.text for item in self.content if item.text)

    @property
    def has_image(self) -> bool:
        return any(item.is_image for item in self.content)

    def without_images(self) -> "HistoryTurn":
        """返回仅保留文本的副本"""
        return HistoryTurn(
            role=self.role,
            content=[item for item in self.content if not item.is_image],
        )

    def to_message(self, include_images: bool = True) -> Dict[str, Any]:
        """
        转换为 OpenAI 兼容的消息格式

        Args:
            include_images: 是否包含图片（不支持图片的模型传 False）

        Returns:
            {"role": ..., "content": ...}
        """
        if not self.has_image or not include_images:
            return {"role": self.role.value, "content": self.text}

        parts: List[Dict[str, Any]] = []
        for item in self.content:
            if item.is_image:
                parts.append(
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/jpeg;base64,{encode_image(item.image)}"},
                    }
                )
            elif item.text:
                parts.append({"type": "text", "text": item.text})
        return {"role": self.role.value, "content": parts}


class ConversationHistory:
    """
    有序对话历史

    不变式：最多只有最新的 user 轮次携带图片
    """

    def __init__(self, turns: Optional[List[HistoryTurn]] = None):
        self.turns: List[HistoryTurn] = list(turns or [])

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self):
        return iter(self.turns)

    def __getitem__(self, index: int) -> HistoryTurn:
        return self.turns[index]

    def append(self, turn: HistoryTurn) -> HistoryTurn:
        if turn.role == Role.USER and turn.has_image:
            self.prune_images()
        self.turns.append(turn)
        return turn

    def clear(self) -> None:
        self.turns.clear()

    def prune_images(self, keep_latest: bool = False) -> int:
        """
        裁剪历史中的图片，只保留文本

        Args:
            keep_latest: 是否保留最新 user 轮次的图片

        Returns:
            被裁剪的轮次数
        """
        latest_user = None
        if keep_latest:
            for index in range(len(self.turns) - 1, -1, -1):
                if self.turns[index].role == Role.USER and self.turns[index].has_image:
                    latest_user = index
                    break

        pruned = 0
        for index, turn in enumerate(self.turns):
            if index != latest_user and turn.has_image:
                self.turns[index] = turn.without_images()
                pruned += 1
        return pruned

    @property
    def image_count(self) -> int:
        return sum(1 for turn in self.turns for item in turn.content if item.is_image)

    def to_messages(self, include_images: bool = True) -> List[Dict[str, Any]]:
        return [turn.to_message(include_images) for turn in self.turns]


def encode_image(image: Image.Image) -> str:
    """
    图片转 base64 JPEG

    最长边超过 1024 时等比缩放，JPEG 质量 70
    """
    width, height = image.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        ratio = MAX_IMAGE_DIMENSION / max(width, height)
        image = image.resize((int(width * ratio), int(height * ratio)))

    if image.mode != "RGB":
        image = image.convert("RGB")

    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return base64.b64encode(buf.getvalue()).decode("utf-8")
