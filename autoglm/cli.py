"""
AutoGLM CLI - 用自然语言驱动 Android 设备
"""

import asyncio
import sys
from functools import wraps
from typing import Optional

import click
import yaml
from adbutils import adb
from loguru import logger
from rich.console import Console
from rich.table import Table

from .apps import AdbAppInventory, AppNameResolver
from .core import TaskOrchestrator
from .device import AdbPlatform, GestureBridge
from .execution import ActionExecutor
from .llm import DecisionClient
from .models import TaskOutcome
from .overlay import ConsoleOverlayRenderer, OverlayStateMachine
from .storage import JsonlTaskRecorder, NullRecorder
from .utils.config import config, reload_config

console = Console()


def configure_logging(debug: bool) -> None:
    logger.remove()
    if debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format="<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> <cyan>{name}</cyan> {message}",
        )
    else:
        logger.add(sys.stderr, level="WARNING", format="<level>{level}</level> {message}")


def coro(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def pick_device(device: Optional[str]) -> str:
    if device:
        return device

    devices = adb.list()
    if not devices:
        raise click.ClickException("No connected devices found.")
    return devices[0].serial


def build_orchestrator(platform: AdbPlatform, steps: int, record: bool) -> TaskOrchestrator:
    """按配置组装编排器及其协作方"""
    width, height = platform.screen_size()
    renderer = ConsoleOverlayRenderer(console=console, screen_size=(width, height))
    overlay = OverlayStateMachine(
        renderer,
        settle_frames=config.get("overlay", "settle_frames", default=2),
        settle_margin=config.get("overlay", "settle_margin", default=0.016),
        hysteresis=config.get("overlay", "hysteresis", default=200),
        top_margin=config.get("overlay", "top_margin", default=300),
        bottom_offset=config.get("overlay", "bottom_offset", default=20),
    )
    bridge = GestureBridge(platform, overlay)
    resolver = AppNameResolver(AdbAppInventory(platform, config.app_aliases))
    executor = ActionExecutor(bridge, platform, resolver)

    recorder = NullRecorder()
    if record and config.storage_path:
        recorder = JsonlTaskRecorder(config.storage_path)

    return TaskOrchestrator(
        bridge=bridge,
        overlay=overlay,
        decision=DecisionClient.from_config(config),
        executor=executor,
        recorder=recorder,
        max_steps=steps,
        capture_timeout=config.capture_timeout,
        step_delay=config.step_delay,
        platform=platform,
        go_home=True,
    )


@coro
async def run_command(goal: str, device: Optional[str], steps: int, use_tcp: bool, record: bool) -> TaskOutcome:
    serial = pick_device(device or config.device_serial)
    console.print(f"[bold]📱 Using device:[/] {serial}")

    platform = AdbPlatform(serial=serial, use_tcp=use_tcp or config.get("device", "use_tcp", default=False))
    try:
        orchestrator = build_orchestrator(platform, steps, record)
        console.print(f"[bold]🚀 Starting:[/] {goal}  (Ctrl+C to stop)")
        try:
            outcome = await orchestrator.start(goal)
        except asyncio.CancelledError:
            outcome = TaskOutcome.USER_STOPPED
    finally:
        platform.close()

    result = orchestrator.last_result
    colour = {
        TaskOutcome.COMPLETED: "green",
        TaskOutcome.USER_STOPPED: "yellow",
        TaskOutcome.MAX_STEPS_REACHED: "yellow",
        TaskOutcome.ERROR: "red",
    }[outcome]
    console.print(f"[{colour}]■ {outcome.value}[/] after {result.steps if result else 0} step(s)")
    if result and result.message:
        console.print(result.message)
    if result and result.error:
        console.print(f"[red]{result.error}[/]")
    return outcome


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None, help="Config file")
def cli(config_path: Optional[str]):
    """AutoGLM - Control your Android device with natural language."""
    if config_path:
        reload_config(config_path)


@cli.command()
@click.argument("goal", type=str)
@click.option("--device", "-d", help="Device serial number or IP address", default=None)
@click.option("--steps", type=int, help="Maximum number of steps", default=None)
@click.option("--use-tcp", is_flag=True, help="Use Portal TCP channel for screenshots and text input", default=False)
@click.option("--record/--no-record", default=True, help="Save the task record when storage.path is configured")
@click.option("--debug", is_flag=True, help="Enable verbose debug logging", default=False)
def run(goal: str, device: Optional[str], steps: Optional[int], use_tcp: bool, record: bool, debug: bool):
    """Run a task on your Android device."""
    configure_logging(debug)
    try:
        outcome = run_command(goal, device, steps or config.max_steps, use_tcp, record)
    except KeyboardInterrupt:
        console.print("[yellow]⏹ Stopped by user[/]")
        sys.exit(130)

    # CLI 中只有 Ctrl+C 会停止任务
    if outcome == TaskOutcome.USER_STOPPED:
        sys.exit(130)
    if outcome == TaskOutcome.ERROR:
        sys.exit(1)


@cli.command()
def devices():
    """List connected Android devices."""
    try:
        found = adb.list()
    except Exception as e:
        raise click.ClickException(f"Error listing devices: {e}")

    if not found:
        console.print("[yellow]No devices connected.[/]")
        return

    console.print(f"[green]Found {len(found)} connected device(s):[/]")
    for item in found:
        console.print(f"  • [bold]{item.serial}[/]")


@cli.command()
@click.option("--device", "-d", help="Device serial number", default=None)
def apps(device: Optional[str]):
    """List launchable apps and the names they resolve from."""
    configure_logging(False)
    platform = AdbPlatform(serial=pick_device(device or config.device_serial), setup_keyboard=False)
    try:
        resolver = AppNameResolver(AdbAppInventory(platform, config.app_aliases))
        resolver.refresh()
    finally:
        platform.close()

    table = Table(title="Launchable apps")
    table.add_column("Name", style="bold")
    table.add_column("Package")
    for name, package in sorted(resolver.index.items()):
        table.add_row(name, package)
    console.print(table)


@cli.command()
@click.argument("name", type=str)
@click.option("--device", "-d", help="Device serial number", default=None)
@click.option("--debug", is_flag=True, help="Show matching details", default=False)
def resolve(name: str, device: Optional[str], debug: bool):
    """Resolve an app name to its package."""
    configure_logging(debug)
    platform = AdbPlatform(serial=pick_device(device or config.device_serial), setup_keyboard=False)
    try:
        package = AppNameResolver(AdbAppInventory(platform, config.app_aliases)).resolve(name)
    finally:
        platform.close()

    if package is None:
        console.print(f"[red]✗ No app matches '{name}'[/]")
        sys.exit(1)
    console.print(f"[green]✓[/] {name} → [bold]{package}[/]")


@cli.command(name="config")
def show_config():
    """Print the effective configuration (API key masked)."""
    effective = config.all
    decision = effective.get("llm", {}).get("decision", {})
    if decision.get("api_key"):
        decision["api_key"] = decision["api_key"][:4] + "****"
    console.print(yaml.safe_dump(effective, allow_unicode=True, sort_keys=False))


if __name__ == "__main__":
    cli()
