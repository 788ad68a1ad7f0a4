"""
错误类型

自动化循环中的错误分类：致命错误终止任务，可恢复错误注入纠正提示后继续
"""


class AutomationError(Exception):
    """自动化错误基类"""

    fatal: bool = True


class CaptureFailure(AutomationError):
    """截图失败（致命）"""


class CaptureTimeout(CaptureFailure):
    """截图超时（致命）"""


class DecisionError(AutomationError):
    """决策服务返回错误（致命，原文展示给用户）"""


class ActionDispatchFailure(AutomationError):
    """动作执行失败（可恢复）"""

    fatal = False


class UnresolvedAppName(ActionDispatchFailure):
    """应用名无法解析为包名"""

    def __init__(self, app_name: str):
        super().__init__(f"Unknown app: {app_name}")
        self.app_name = app_name


class ExecutorUnavailable(AutomationError):
    """动作执行器不可用（致命）"""


class TaskAlreadyRunningError(RuntimeError):
    """已有任务在运行"""
