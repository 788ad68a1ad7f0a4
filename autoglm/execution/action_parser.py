"""
动作解析

把决策服务的文本响应解析为 (思考过程, ActionCommand)。
模型坐标为 0-999 的相对网格，解析时换算为屏幕像素
"""

import ast
import re
from typing import Any, Dict, List, Tuple

from loguru import logger

from ..models import (
    ActionCommand,
    Back,
    DoubleTap,
    Error,
    Finish,
    Home,
    Launch,
    LongPress,
    Swipe,
    Tap,
    Type,
    Wait,
)

RELATIVE_GRID = 1000
DEFAULT_WAIT_SECONDS = 1.0

_TYPE_ACTION = re.compile(r"""^do\(\s*action\s*=\s*(["'])Type(?:_Name)?\1\s*[,)]""")
_TYPE_TEXT = re.compile(r"""text\s*=\s*(["'])(?P<text>.*)\1\s*\)\s*$""", re.DOTALL)
_FINISH_MESSAGE = re.compile(r"""message\s*=\s*(["'])(?P<message>.*)\1\s*\)\s*$""", re.DOTALL)
_SECONDS = re.compile(r"(\d+(?:\.\d+)?)")


def parse_response_parts(content: str) -> Tuple[str, str]:
    """
    拆分响应为思考过程与动作文本

    规则：
    1. 包含 finish(message= ：之前为思考，之后为动作
    2. 否则包含 do(action= ：同上
    3. 否则包含 <answer> ：按标签拆分
    4. 否则思考为空，整个内容作为动作

    Returns:
        (thinking, action)
    """
    for marker in ("finish(message=", "do(action="):
        if marker in content:
            before, after = content.split(marker, 1)
            return _clean_thinking(before), _clean_action(marker + after)

    if "<answer>" in content:
        before, after = content.split("<answer>", 1)
        return _clean_thinking(before), _clean_action(after)

    return "", content.strip()


def _clean_thinking(text: str) -> str:
    for tag in ("<think>", "</think>", "<answer>"):
        text = text.replace(tag, "")
    return text.strip()


def _clean_action(text: str) -> str:
    return text.split("</answer>", 1)[0].strip()


def parse_action(content: str, screen_width: int, screen_height: int) -> ActionCommand:
    """
    解析动作

    Args:
        content: 决策服务的完整响应
        screen_width: 屏幕宽度（像素）
        screen_height: 屏幕高度（像素）

    Returns:
        ActionCommand；无法解析或不支持的动作返回 Error
    """
    _, action_text = parse_response_parts(content)

    try:
        return _parse_action_text(action_text, screen_width, screen_height)
    except (ValueError, SyntaxError, TypeError, KeyError, IndexError) as e:
        logger.warning(f"Failed to parse action '{action_text[:100]}': {e}")
        return Error(reason=f"Failed to parse action: {e}")


def _parse_action_text(text: str, width: int, height: int) -> ActionCommand:
    if text.startswith("finish"):
        match = _FINISH_MESSAGE.search(text)
        return Finish(message=match.group("message") if match else "")

    if not text.startswith("do"):
        raise ValueError(f"Unrecognized action: {text[:50]}")

    # Type 的文本可能包含引号，不能走 AST
    if _TYPE_ACTION.match(text):
        match = _TYPE_TEXT.search(text)
        if match is None:
            raise ValueError("Type action without text")
        return Type(text=match.group("text"))

    params = _parse_call(text)
    name = params.get("action")

    if name == "Tap":
        x, y = _scale(params["element"], width, height)
        return Tap(x=x, y=y)

    if name == "Double Tap":
        x, y = _scale(params["element"], width, height)
        return DoubleTap(x=x, y=y)

    if name == "Long Press":
        x, y = _scale(params["element"], width, height)
        return LongPress(x=x, y=y)

    if name == "Swipe":
        start_x, start_y = _scale(params["start"], width, height)
        end_x, end_y = _scale(params["end"], width, height)
        return Swipe(start_x=start_x, start_y=start_y, end_x=end_x, end_y=end_y)

    if name in ("Type", "Type_Name"):
        if "text" not in params:
            raise ValueError("Type action without text")
        return Type(text=str(params["text"]))

    if name == "Launch":
        app = params.get("app")
        if not app:
            raise ValueError("Launch action without app")
        return Launch(app_name=str(app))

    if name == "Back":
        return Back()

    if name == "Home":
        return Home()

    if name == "Wait":
        return Wait(duration_ms=int(_seconds(params.get("duration")) * 1000))

    return Error(reason=f"Unsupported action: {name}")


def _parse_call(text: str) -> Dict[str, Any]:
    """安全解析 do(key=value, ...) 调用（只接受字面量）"""
    escaped = text.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    tree = ast.parse(escaped, mode="eval")
    if not isinstance(tree.body, ast.Call):
        raise ValueError("Expected a function call")

    return {keyword.arg: ast.literal_eval(keyword.value) for keyword in tree.body.keywords}


def _scale(point: List[Any], width: int, height: int) -> Tuple[int, int]:
    """0-999 相对坐标 -> 屏幕像素"""
    if not isinstance(point, (list, tuple)) or len(point) != 2:
        raise ValueError(f"Invalid coordinates: {point}")
    rel_x, rel_y = float(point[0]), float(point[1])
    return int(rel_x / RELATIVE_GRID * width), int(rel_y / RELATIVE_GRID * height)


def _seconds(duration: Any) -> float:
    """解析 "x seconds" 形式的时长"""
    if duration is None:
        return DEFAULT_WAIT_SECONDS
    if isinstance(duration, (int, float)):
        return float(duration)
    match = _SECONDS.search(str(duration))
    return float(match.group(1)) if match else DEFAULT_WAIT_SECONDS
