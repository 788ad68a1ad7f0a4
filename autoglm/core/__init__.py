"""
核心编排模块
"""

from .orchestrator import TaskOrchestrator
from .status import describe_action, terminal_status

__all__ = [
    "TaskOrchestrator",
    "describe_action",
    "terminal_status",
]
