"""
动作解析与执行模块
"""

from .action_executor import ActionExecutor
from .action_parser import parse_action, parse_response_parts

__all__ = [
    "ActionExecutor",
    "parse_action",
    "parse_response_parts",
]
