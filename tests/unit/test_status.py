"""
状态文本测试
"""

import pytest

from autoglm.core import describe_action, terminal_status
from autoglm.models import Error, Finish, Launch, Tap, TaskOutcome, Type


@pytest.mark.parametrize(
    "action, expected",
    [
        (Tap(x=1, y=2), "Tapping..."),
        (Type(text="hello"), "Typing: hello"),
        (Launch(app_name="Chrome"), "Launching Chrome..."),
        (Finish(message="ok"), "Task finished"),
        (Error(reason="bad output"), "Error: bad output"),
    ],
)
def test_describe_action(action, expected):
    assert describe_action(action) == expected


@pytest.mark.parametrize(
    "outcome, error, expected",
    [
        (TaskOutcome.COMPLETED, None, "Task finished"),
        (TaskOutcome.USER_STOPPED, None, "Stopped"),
        (TaskOutcome.MAX_STEPS_REACHED, None, "Reached maximum steps"),
        (TaskOutcome.ERROR, "Error: 500 upstream", "Error: 500 upstream"),
        (TaskOutcome.ERROR, None, "Error"),
    ],
)
def test_terminal_status(outcome, error, expected):
    assert terminal_status(outcome, error) == expected
