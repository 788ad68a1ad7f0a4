"""
应用解析模块
"""

from .inventory import AdbAppInventory, AppInventory, StaticAppInventory, display_name_for
from .resolver import AppNameResolver, jaccard, levenshtein, normalize_name

__all__ = [
    "AppInventory",
    "StaticAppInventory",
    "AdbAppInventory",
    "display_name_for",
    "AppNameResolver",
    "normalize_name",
    "jaccard",
    "levenshtein",
]
