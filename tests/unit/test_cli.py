"""
CLI 测试
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from autoglm.cli import cli
from autoglm.models import TaskOutcome
from autoglm.utils.config import config, reload_config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"llm": {"decision": {"api_key": "sk-secret-key"}}, "apps": {"aliases": {"微信": "com.tencent.mm"}}}),
        encoding="utf-8",
    )
    yield str(path)
    reload_config()


def test_config_masks_api_key(runner, config_file):
    result = runner.invoke(cli, ["--config", config_file, "config"])

    assert result.exit_code == 0
    assert "sk-secret-key" not in result.output
    assert "sk-s****" in result.output
    # 打印的是副本，内存中的配置不受影响
    assert config.decision_api_key == "sk-secret-key"


def test_devices(runner):
    with patch("autoglm.cli.adb") as mock_adb:
        mock_adb.list.return_value = [SimpleNamespace(serial="emulator-5554")]
        result = runner.invoke(cli, ["devices"])

    assert result.exit_code == 0
    assert "emulator-5554" in result.output


def test_resolve(runner, config_file):
    with patch("autoglm.cli.AdbPlatform") as platform_cls:
        platform_cls.return_value.list_launcher_packages.return_value = ["com.android.chrome"]
        ok = runner.invoke(cli, ["--config", config_file, "resolve", "chorme", "-d", "emulator-5554"])
        alias = runner.invoke(cli, ["--config", config_file, "resolve", "微信", "-d", "emulator-5554"])
        missing = runner.invoke(cli, ["--config", config_file, "resolve", "Nonexistent App Name", "-d", "emulator-5554"])

    assert ok.exit_code == 0
    assert "com.android.chrome" in ok.output
    assert alias.exit_code == 0
    assert "com.tencent.mm" in alias.output
    assert missing.exit_code == 1
    platform_cls.return_value.close.assert_called()


@pytest.mark.parametrize(
    "outcome, exit_code",
    [
        (TaskOutcome.COMPLETED, 0),
        (TaskOutcome.MAX_STEPS_REACHED, 0),
        (TaskOutcome.ERROR, 1),
        (TaskOutcome.USER_STOPPED, 130),
    ],
)
def test_run_exit_codes(runner, outcome, exit_code):
    with patch("autoglm.cli.run_command", return_value=outcome):
        result = runner.invoke(cli, ["run", "Open Chrome"])

    assert result.exit_code == exit_code


def test_run_keyboard_interrupt(runner):
    with patch("autoglm.cli.run_command", side_effect=KeyboardInterrupt):
        result = runner.invoke(cli, ["run", "Open Chrome"])

    assert result.exit_code == 130
    assert "Stopped by user" in result.output
