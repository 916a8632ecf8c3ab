import asyncio

import click

from kgrip.server.client import (
    close_connection,
    collect_statuses,
    open_connection,
    send_command,
)
from kgrip.server.server import start_server
from kgrip.types import CONSTS
from kgrip.util import DEFAULT_HOST_ADDR, DEFAULT_PORT
from kgrip.util.check_hw import get_hw_ports, list_usb_devices


def print_tree(cmd, prefix="", parent_ctx=None):
    """Print command tree starting from given command."""
    ctx = click.Context(cmd, info_name=cmd.name, parent=parent_ctx)

    if not parent_ctx:
        click.echo(cmd.name)

    for sub in sorted(cmd.list_commands(ctx)):
        sub_cmd = cmd.get_command(ctx, sub)
        click.echo(f"{prefix}└── {sub}")
        if isinstance(sub_cmd, click.Group):
            print_tree(sub_cmd, prefix + "    ", ctx)


def tree_option(f):
    """Add --tree option to command."""

    def callback(ctx, param, value):
        if not value or ctx.resilient_parsing:
            return
        print_tree(ctx.command)
        ctx.exit()

    return click.option(
        "--tree",
        is_flag=True,
        help="Show command tree from this point",
        expose_value=False,
        is_eager=True,
        callback=callback,
    )(f)


INBOUND_COMMANDS = [
    CONSTS.CMD.MEASURE_START,
    CONSTS.CMD.MEASURE_SAMPLING_ON,
    CONSTS.CMD.MEASURE_STOP,
    CONSTS.CMD.APP_HIDE,
    CONSTS.CMD.APP_SHOW,
    CONSTS.CMD.SHOW_GAUGE,
    CONSTS.CMD.HIDE_GAUGE,
]


@click.group()
@tree_option
def cli():
    """kgrip - K-Force Grip dynamometer service.

    Drives the grip over USB serial and reports measurements to a host
    application over ZeroMQ.
    """
    pass


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    help="Path to config.json (default: cwd, then ~/.kgrip)",
)
@click.option(
    "--state",
    "-s",
    "state_path",
    default=None,
    help="Path to the persisted state file (default: cwd, then ~/.kgrip)",
)
@click.option(
    "--log-to-file/--no-log-to-file",
    "-ltf/",
    default=True,
    help="Enable/disable logging to file (default: enabled)",
)
@click.option(
    "--log-to-stdout/--no-log-to-stdout",
    "-lts/",
    default=True,
    help="Enable/disable console logging (default: enabled)",
)
@click.option(
    "--log-path",
    "-lp",
    default="",
    help="Custom path for log file (default: logFilePath, else ~/.kgrip/server.log)",
)
@click.option(
    "--clear-prev-log/--no-clear-prev-log",
    default=True,
    help="Clear previous log file on startup (default: enabled)",
)
@click.option(
    "--log-level",
    "-ll",
    default=None,
    help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR) (default: from debugLevel)",
)
@click.option(
    "--mock/--no-mock",
    default=False,
    help="Use the in-memory mock grip instead of a serial device",
)
def serve(**kwargs):
    """Run the grip server until interrupted.

    Binds the ZeroMQ socket from config.json, waits for commands from the host
    application and drives the grip accordingly.
    """
    try:
        asyncio.run(start_server(**kwargs))
    except KeyboardInterrupt:
        click.echo("Server stopped.")


@cli.command()
@click.option(
    "--usb/--all",
    default=False,
    help="Only list ports exposing USB vendor/product ids",
)
def ports(usb):
    """List all available COM ports.

    Displays information about serial/COM ports:
    - Port name (e.g. COM1, /dev/ttyUSB0)
    - Device description
    - Hardware information, or vendor/product id with --usb
    """
    if usb:
        devices = list_usb_devices()
        click.echo("\nUSB serial ports:")
        click.echo("-----------------")
        if not devices:
            click.echo("No USB serial ports found")
            click.echo("")
            return
        for dev in devices:
            click.echo(f"\nPort: {dev['path']}")
            click.echo(f"Vendor/Product: {dev['vendor_id']}:{dev['product_id']}")
            click.echo(f"Description: {dev['description']}")
        click.echo("")
        return

    ports = get_hw_ports()

    click.echo("\nAvailable COM ports:")
    click.echo("-------------------")

    if not ports:
        click.echo("No COM ports found")
        click.echo("")
        return

    for port, info in ports.items():
        click.echo(f"\nPort: {port}")
        if len(info) >= 2:
            description, hwid = info
            click.echo(f"Description: {description}")
            click.echo(f"Hardware ID: {hwid}")

    click.echo("")


@cli.command()
@click.argument("cmd", type=click.Choice(INBOUND_COMMANDS))
@click.option(
    "--host", "-h", default=DEFAULT_HOST_ADDR, help="Server address (default: localhost)"
)
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
@click.option(
    "--wait",
    "-w",
    default=0.0,
    type=float,
    help="Seconds to print statuses for after sending (default: 0)",
)
def send(cmd, host, port, wait):
    """Send one command to a running server, as the host application would."""
    conn = open_connection(host, port)
    try:
        send_command(conn, cmd)
        click.echo(f"Sent {cmd} to {host}:{port}")
        for status in collect_statuses(conn, wait):
            click.echo(status)
    finally:
        close_connection(conn)
