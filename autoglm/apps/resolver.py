"""
应用名称解析

把模型给出的应用名映射为包名：精确匹配 -> Jaccard 词集相似度 -> Levenshtein 编辑距离
"""

import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from .inventory import AppInventory

JACCARD_THRESHOLD = 0.5
LEVENSHTEIN_THRESHOLD = 3

_PUNCTUATION = re.compile(r"[.,!?;:'\"()\[\]{}<>\\/]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """
    规范化名称：标点替换为空格，去首尾空白并合并连续空白（保留大小写）

    >>> normalize_name("Google, Chrome!")
    'Google Chrome'
    """
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", name).strip())


def _words(name: str) -> List[str]:
    return [word for word in name.lower().split(" ") if word]


def jaccard(a: List[str], b: List[str]) -> float:
    """词集 Jaccard 相似度 |A∩B| / |A∪B|"""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def levenshtein(a: str, b: str) -> int:
    """编辑距离（插入、删除、替换各计 1）"""
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
        previous = current
    return previous[-1]


class AppNameResolver:
    """
    应用名称解析器

    索引为 {规范化显示名: 包名}，未命中时从清单刷新一次再重试
    """

    def __init__(self, inventory: AppInventory):
        self.inventory = inventory
        self._index: Dict[str, str] = {}

    @property
    def index(self) -> Dict[str, str]:
        return dict(self._index)

    def refresh(self) -> int:
        """
        从清单重建索引（同名条目后者覆盖前者）

        Returns:
            索引条目数
        """
        index: Dict[str, str] = {}
        for display_name, identifier in self.inventory.list_installed_apps():
            key = normalize_name(display_name)
            if key:
                index[key] = identifier

        self._index = index

        if index:
            logger.info(f"App index refreshed: {len(index)} apps")
            for name in sorted(index):
                logger.debug(f"  '{name}' -> '{index[name]}'")
        else:
            logger.warning("App index is empty, no launcher apps discovered")
        return len(index)

    def resolve(self, name: str) -> Optional[str]:
        """
        解析应用名

        Args:
            name: 应用名（如 "Chrome"、"微信"）

        Returns:
            包名；找不到返回 None
        """
        result = self._find(name)
        if result is not None:
            return result

        logger.debug(f"'{name}' not in app index, refreshing")
        self.refresh()

        result = self._find(name)
        if result is None:
            logger.warning(f"App not found: '{name}'")
        return result

    def _find(self, name: str) -> Optional[str]:
        query = normalize_name(name)
        if not query:
            return None
        folded = query.lower()

        # 1. 精确匹配（忽略大小写）
        for key, identifier in self._index.items():
            if key.lower() == folded:
                logger.debug(f"Exact match: '{name}' -> '{key}'")
                return identifier

        # 2. Jaccard：只对多词输入
        query_words = _words(query)
        if len(query_words) > 1:
            best: Optional[Tuple[str, float]] = None
            for key in self._index:
                score = jaccard(query_words, _words(key))
                if score >= JACCARD_THRESHOLD and (best is None or score > best[1]):
                    best = (key, score)
            if best is not None:
                logger.debug(f"Jaccard match ({best[1]:.2f}): '{name}' -> '{best[0]}'")
                return self._index[best[0]]

        # 3. Levenshtein：容忍拼写错误
        closest: Optional[Tuple[str, int]] = None
        for key in self._index:
            distance = levenshtein(folded, key.lower())
            if distance <= LEVENSHTEIN_THRESHOLD and (closest is None or distance < closest[1]):
                closest = (key, distance)
        if closest is not None:
            logger.debug(f"Levenshtein match ({closest[1]}): '{name}' -> '{closest[0]}'")
            return self._index[closest[0]]

        return None
