"""
决策服务客户端

基于 OpenAI 兼容接口：输入对话历史，返回模型原始文本。
服务故障不抛异常，而是返回以 "Error" 开头的文本，由编排循环判定为致命错误
"""

import asyncio
from typing import Any, Dict, List, Optional

import openai
from loguru import logger
from openai import AsyncOpenAI

from ..models import ConversationHistory
from ..utils.config import Config, config as default_config


class DecisionClient:
    """
    决策服务客户端

    不支持图片的模型（DeepSeek 系列）只发送文本
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        max_tokens: int = 3000,
        temperature: float = 0.0,
        top_p: float = 0.85,
        frequency_penalty: float = 0.2,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        初始化客户端

        Args:
            base_url: API 地址
            api_key: API Key
            model: 模型名称
            timeout: 请求超时（秒）
            max_retries: SDK 自动重试次数
            client: 现成的 AsyncOpenAI 实例（测试注入用）
        """
        self.base_url = base_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.frequency_penalty = frequency_penalty

        self.client = client or AsyncOpenAI(
            api_key=api_key or "dummy",
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

        logger.info(f"DecisionClient initialized (model={model}, base_url={base_url})")

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "DecisionClient":
        """从配置创建客户端"""
        cfg = cfg or default_config
        return cls(
            base_url=cfg.decision_base_url,
            api_key=cfg.decision_api_key,
            model=cfg.decision_model,
            timeout=cfg.get("llm", "decision", "timeout", default=60.0),
            max_retries=cfg.get("llm", "decision", "max_retries", default=2),
            max_tokens=cfg.get("llm", "decision", "max_tokens", default=3000),
            temperature=cfg.get("llm", "decision", "temperature", default=0.0),
            top_p=cfg.get("llm", "decision", "top_p", default=0.85),
            frequency_penalty=cfg.get("llm", "decision", "frequency_penalty", default=0.2),
        )

    @property
    def supports_images(self) -> bool:
        text_only = "deepseek"
        return text_only not in self.model.lower() and text_only not in self.base_url.lower()

    def build_messages(self, history: ConversationHistory) -> List[Dict[str, Any]]:
        if not self.supports_images:
            logger.debug("Text-only model, stripping images from request")
        return history.to_messages(include_images=self.supports_images)

    async def decide(self, history: ConversationHistory) -> str:
        """
        请求下一步决策

        Args:
            history: 对话历史（包含系统提示词与最新截图）

        Returns:
            模型响应文本；失败时为 "Error: ..." 文本
        """
        messages = self.build_messages(history)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                top_p=self.top_p,
                frequency_penalty=self.frequency_penalty,
            )
        except asyncio.CancelledError:
            raise
        except openai.APIStatusError as e:
            logger.error(f"Decision API error: {e.status_code} {e.message}")
            return f"Error: {e.status_code} {e.message}"
        except openai.APITimeoutError:
            logger.error("Decision API timed out")
            return "Error: Network Error: Connection timed out. Check your internet connection."
        except openai.APIConnectionError as e:
            logger.error(f"Decision API connection failed: {e}")
            return "Error: Network Error: Connection failed. Check the Base URL and your network."
        except Exception as e:
            logger.exception("Decision API exception")
            return f"Error: {e}"

        if not response.choices:
            logger.warning("Decision API returned no choices")
            return ""

        content = response.choices[0].message.content or ""
        logger.debug(f"Decision response ({len(content)} chars)")
        return content
