"""
配置管理模块

提供统一的配置加载和访问接口
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# 内置默认配置（配置文件缺失的键使用这里的值）
DEFAULTS: Dict[str, Any] = {
    "llm": {
        "decision": {
            "base_url": "https://open.bigmodel.cn/api/paas/v4",
            "api_key": "",
            "model": "autoglm-phone",
            "timeout": 60.0,
            "max_retries": 2,
            "max_tokens": 3000,
            "temperature": 0.0,
            "top_p": 0.85,
            "frequency_penalty": 0.2,
        },
    },
    "device": {
        "serial": None,
        "use_tcp": False,
    },
    "task": {
        "max_steps": 20,
        "step_delay": 2.0,
        "capture_timeout": 5.0,
    },
    "overlay": {
        "settle_frames": 2,
        "settle_margin": 0.016,
        "hysteresis": 200,
        "top_margin": 300,
        "bottom_offset": 20,
    },
    "apps": {
        "aliases": {},
    },
    "storage": {
        "path": None,
    },
}


class Config:
    """
    配置管理器

    单例模式，全局访问配置
    """

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._config:
            self.load_config()

    def load_config(self, config_path: Optional[str] = None) -> None:
        """
        加载配置文件

        Args:
            config_path: 配置文件路径，默认为 configs/config.yaml（不存在时仅使用内置默认值）
        """
        explicit = config_path is not None
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = os.getenv("AUTOGLM_CONFIG") or project_root / "configs" / "config.yaml"

        config_path = Path(config_path)

        loaded: Dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        elif explicit:
            raise FileNotFoundError(f"配置文件不存在: {config_path}")

        self._config = _merge(copy.deepcopy(DEFAULTS), loaded)

        # 环境变量覆盖
        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """
        应用环境变量覆盖

        支持的环境变量：
        - AUTOGLM_API_KEY
        - AUTOGLM_BASE_URL
        - AUTOGLM_MODEL
        - AUTOGLM_DEVICE
        """
        env_mappings = {
            "AUTOGLM_API_KEY": ["llm", "decision", "api_key"],
            "AUTOGLM_BASE_URL": ["llm", "decision", "base_url"],
            "AUTOGLM_MODEL": ["llm", "decision", "model"],
            "AUTOGLM_DEVICE": ["device", "serial"],
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                self.set(*config_path, value=value)

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        获取配置值（支持嵌套）

        Args:
            *keys: 配置键路径，如 get('llm', 'decision', 'model')
            default: 默认值

        Returns:
            配置值

        Examples:
            >>> config = Config()
            >>> config.get('task', 'max_steps')
            20
            >>> config.get('nonexistent', default='default_value')
            'default_value'
        """
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, *keys: str, value: Any) -> None:
        """
        设置配置值（支持嵌套）

        Args:
            *keys: 配置键路径
            value: 配置值
        """
        if len(keys) == 0:
            raise ValueError("至少需要一个键")

        current = self._config
        for key in keys[:-1]:
            current = current.setdefault(key, {})
        current[keys[-1]] = value

    @property
    def all(self) -> Dict[str, Any]:
        """获取完整配置"""
        return copy.deepcopy(self._config)

    # ========================================
    # 便捷访问方法
    # ========================================

    @property
    def decision_base_url(self) -> str:
        """决策模型 API 基础 URL"""
        return self.get("llm", "decision", "base_url")

    @property
    def decision_api_key(self) -> str:
        """决策模型 API Key"""
        return self.get("llm", "decision", "api_key", default="")

    @property
    def decision_model(self) -> str:
        """决策模型名称"""
        return self.get("llm", "decision", "model")

    @property
    def device_serial(self) -> Optional[str]:
        """设备序列号（None 表示默认设备）"""
        return self.get("device", "serial")

    @property
    def max_steps(self) -> int:
        """单个任务最大步数"""
        return self.get("task", "max_steps", default=20)

    @property
    def step_delay(self) -> float:
        """步骤间等待时间（秒）"""
        return self.get("task", "step_delay", default=2.0)

    @property
    def capture_timeout(self) -> float:
        """截图超时（秒）"""
        return self.get("task", "capture_timeout", default=5.0)

    @property
    def app_aliases(self) -> Dict[str, str]:
        """用户配置的应用名 -> 包名映射"""
        return self.get("apps", "aliases", default={}) or {}

    @property
    def storage_path(self) -> Optional[str]:
        """任务记录目录（None 表示不记录）"""
        return self.get("storage", "path")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """递归合并配置字典"""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


# 全局配置实例
config = Config()


def get_config(*keys: str, default: Any = None) -> Any:
    """
    获取配置值

    Args:
        *keys: 配置键路径
        default: 默认值

    Returns:
        配置值
    """
    return config.get(*keys, default=default)


def reload_config(config_path: Optional[str] = None) -> None:
    """
    重新加载配置

    Args:
        config_path: 配置文件路径
    """
    config.load_config(config_path)
