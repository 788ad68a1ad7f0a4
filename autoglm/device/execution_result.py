"""
设备操作执行结果模型

用于 DevicePlatform 的异步辅助方法（按键、启动应用、输入文本）返回结果
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ExecutionResult(BaseModel):
    """
    设备操作执行结果

    success=False 表示设备拒绝了请求（如找不到启动 Activity）；
    通信异常直接抛出 RuntimeError
    """

    success: bool = Field(..., description="是否成功")
    message: str = Field(..., description="结果描述信息")
    error: Optional[str] = Field(None, description="错误信息（失败时）")
    data: Optional[Dict[str, Any]] = Field(None, description="附加数据")
    operation: Optional[str] = Field(None, description="操作类型（press_key/start_app/input_text 等）")
    duration_ms: Optional[int] = Field(None, description="执行耗时（毫秒）")

    @classmethod
    def ok(
        cls,
        message: str,
        operation: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
    ) -> "ExecutionResult":
        return cls(
            success=True,
            message=message,
            operation=operation,
            data=data,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(cls, message: str, error: str, operation: Optional[str] = None) -> "ExecutionResult":
        return cls(success=False, message=message, error=error, operation=operation)
