"""
决策服务模块
"""

from .client import DecisionClient
from .prompts import first_step_prompt, get_system_prompt, next_step_prompt, screen_info

__all__ = [
    "DecisionClient",
    "get_system_prompt",
    "screen_info",
    "first_step_prompt",
    "next_step_prompt",
]
