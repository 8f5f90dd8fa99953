"""CLI commands for smarthome."""

import asyncio
import json
import os
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from smarthome import __logo__, __version__

app = typer.Typer(
    name="smarthome",
    help=f"{__logo__} smarthome - Smart home fulfillment backend",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} smarthome v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """smarthome - Smart home fulfillment backend."""
    pass


def _toggle_logs(logs: bool, config) -> None:
    from loguru import logger

    from smarthome.utils.helpers import configure_logging

    if logs:
        configure_logging(config.logging.level, config.logging.file)
        logger.enable("smarthome")
    else:
        logger.disable("smarthome")


def _open_data_store(config):
    from smarthome.api.data_store import SmartHomeDataStore

    try:
        return SmartHomeDataStore.from_config(config)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Device store unavailable:[/red] {exc}")
        raise typer.Exit(1) from exc


# ============================================================================
# Config Commands
# ============================================================================


config_app = typer.Typer(help="Manage smarthome config")
app.add_typer(config_app, name="config")


@config_app.command("check")
def config_check(
    config: Path | None = typer.Option(None, "--config", help="Config path to validate"),
):
    """Validate config JSON structure and schema."""
    from smarthome.config.loader import convert_keys, get_config_path
    from smarthome.config.schema import Config

    config_path = (config or get_config_path()).expanduser()
    if not config_path.exists():
        console.print(f"[red]Config file not found:[/red] {config_path}")
        raise typer.Exit(2)

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON:[/red] {exc}")
        raise typer.Exit(2) from exc
    except OSError as exc:
        console.print(f"[red]Failed to read config:[/red] {exc}")
        raise typer.Exit(2) from exc

    try:
        cfg = Config.model_validate(convert_keys(raw))
    except Exception as exc:
        console.print(f"[red]Schema validation failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print("[green]✓[/green] Config validation passed")
    console.print(f"path={config_path}")
    console.print(f"store={cfg.store.backend}")
    console.print(f"server={cfg.server.host}:{cfg.server.port} auth={'on' if cfg.server.auth.enabled else 'off'}")
    console.print(f"reject_unknown_commands={'on' if cfg.engine.reject_unknown_commands else 'off'}")


# ============================================================================
# Server
# ============================================================================


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host override"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port override"),
    backend: str | None = typer.Option(None, "--backend", help="Store backend override: firestore/sqlite"),
    logs: bool = typer.Option(True, "--logs/--no-logs", help="Show runtime logs"),
):
    """Start the fulfillment endpoint and admin API."""
    from loguru import logger

    from smarthome.api.server import SmartHomeServer
    from smarthome.config.loader import load_config

    config = load_config()
    _toggle_logs(logs, config)

    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if backend:
        config.store.backend = backend

    data_store = _open_data_store(config)
    console.print(f"{__logo__} smarthome server")
    console.print(f"store={data_store.store.name}")
    console.print(f"endpoint=http://{config.server.host}:{config.server.port}/smarthome")

    async def run() -> None:
        server: SmartHomeServer | None = None
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _request_stop() -> None:
            loop.call_soon_threadsafe(stop_event.set)

        if os.name != "nt":
            signal.signal(signal.SIGINT, lambda *_: _request_stop())
            signal.signal(signal.SIGTERM, lambda *_: _request_stop())

        try:
            server = SmartHomeServer(
                host=config.server.host,
                port=config.server.port,
                data_store=data_store,
                loop=loop,
                max_request_body_bytes=config.server.max_body_bytes,
                request_timeout_seconds=config.server.request_timeout_seconds,
                auth_enabled=config.server.auth.enabled,
                auth_token=config.server.auth.token,
                rate_limit_enabled=config.server.auth.rate_limit_enabled,
                rate_limit_rpm=config.server.auth.rate_limit_rpm,
                rate_limit_burst=config.server.auth.rate_limit_burst,
            )
            server.start()
            await stop_event.wait()
        except KeyboardInterrupt:
            console.print("\nShutting down...")
        finally:
            if server:
                server.stop()
            await data_store.close()
            logger.info("smarthome server stopped")

    asyncio.run(run())


# ============================================================================
# Device Commands
# ============================================================================


devices_app = typer.Typer(help="Inspect and drive devices in the store")
app.add_typer(devices_app, name="devices")


@devices_app.command("list")
def devices_list(
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show runtime logs"),
):
    """List a user's devices."""
    from smarthome.config.loader import load_config

    config = load_config()
    _toggle_logs(logs, config)
    data_store = _open_data_store(config)

    async def run():
        try:
            return await data_store.get_devices(user)
        finally:
            await data_store.close()

    devices = asyncio.run(run())
    if not devices:
        console.print(f"No devices for user {user}.")
        return

    table = Table(title=f"Devices of {user}")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Online")
    table.add_column("TFA")
    table.add_column("Error")

    for device in devices:
        name = device.name.get("name", "") if isinstance(device.name, dict) else str(device.name or "")
        online = "[green]yes[/green]" if device.is_online else "[dim]no[/dim]"
        table.add_row(device.device_id, name, online, device.tfa or "-", device.error_code or "-")

    console.print(table)


@devices_app.command("execute")
def devices_execute(
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    device: str = typer.Option(..., "--device", "-d", help="Device id"),
    command: str = typer.Option(..., "--command", "-c", help="Command name, e.g. OnOff"),
    params: str = typer.Option("{}", "--params", help="Command params as a JSON object"),
    pin: str | None = typer.Option(None, "--pin", help="Challenge pin"),
    ack: bool = typer.Option(False, "--ack", help="Send an acknowledge challenge"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show runtime logs"),
):
    """Run one command through the execution engine."""
    from smarthome.config.loader import load_config
    from smarthome.engine import Execution
    from smarthome.errors import SmartHomeError

    try:
        parsed = json.loads(params)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --params JSON:[/red] {exc}")
        raise typer.Exit(2) from exc
    if not isinstance(parsed, dict):
        console.print("[red]--params must be a JSON object[/red]")
        raise typer.Exit(2)

    challenge: dict[str, object] | None = None
    if pin is not None:
        challenge = {"pin": pin}
    elif ack:
        challenge = {"ack": True}

    config = load_config()
    _toggle_logs(logs, config)
    data_store = _open_data_store(config)
    execution = Execution(command=command, params=parsed, challenge=challenge)

    async def run():
        try:
            return await data_store.execute(user, device, execution)
        finally:
            await data_store.close()

    try:
        states = asyncio.run(run())
    except SmartHomeError as exc:
        console.print(f"[red]{execution.command} failed:[/red] {exc.code}")
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/green] {execution.command}")
    console.print_json(json.dumps(states, ensure_ascii=False))


if __name__ == "__main__":
    app()
