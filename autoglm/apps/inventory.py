"""
已安装应用清单

AppNameResolver 通过清单重建名称索引
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from loguru import logger

# 包名中不适合作为显示名的通用片段
GENERIC_PACKAGE_PARTS = {"android", "app", "apps", "mobile", "client", "main", "launcher", "phone"}


class AppInventory(ABC):
    """应用清单接口"""

    @abstractmethod
    def list_installed_apps(self) -> List[Tuple[str, str]]:
        """
        列出可启动的应用

        Returns:
            [(显示名, 包名), ...]
        """


class StaticAppInventory(AppInventory):
    """固定映射清单（测试、离线场景）"""

    def __init__(self, apps: Optional[Dict[str, str]] = None):
        self.apps: Dict[str, str] = dict(apps or {})

    def list_installed_apps(self) -> List[Tuple[str, str]]:
        return list(self.apps.items())


class AdbAppInventory(AppInventory):
    """
    基于 ADB 的应用清单

    列出所有带桌面入口的应用，显示名由包名推导；
    配置中的别名（apps.aliases）优先并补充到结果中
    """

    def __init__(self, platform, aliases: Optional[Dict[str, str]] = None):
        """
        Args:
            platform: 提供 list_launcher_packages() 的设备平台（AdbPlatform）
            aliases: {显示名: 包名}
        """
        self.platform = platform
        self.aliases: Dict[str, str] = dict(aliases or {})

    def list_installed_apps(self) -> List[Tuple[str, str]]:
        try:
            packages = self.platform.list_launcher_packages()
        except Exception as e:
            logger.error(f"Failed to list launcher apps: {e}")
            packages = []

        aliased = set(self.aliases.values())
        apps = [(display_name_for(package), package) for package in packages if package not in aliased]
        apps.extend(self.aliases.items())

        logger.debug(f"Inventory: {len(packages)} launcher packages, {len(self.aliases)} aliases")
        return apps


def display_name_for(package: str) -> str:
    """
    由包名推导显示名

    取最后一个非通用片段并首字母大写，如 com.android.chrome -> Chrome
    """
    parts = [part for part in package.split(".") if part]
    for part in reversed(parts):
        if part.lower() not in GENERIC_PACKAGE_PARTS:
            return part.replace("_", " ").capitalize()
    return package
