"""``otc-machine`` command line host.

Each invocation loads the machine state from disk, runs one driver
operation and writes the state back.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from otcmachine.driver import ClientFactory, Driver
from otcmachine.exceptions import OtcMachineError, TeardownError
from otcmachine.flags import CREATE_FLAGS, DriverOptions, Flag
from otcmachine.logging import LogConfig, setup_logging, teardown_logging
from otcmachine.store import DEFAULT_STORAGE_PATH, MachineStore

STORAGE_PATH_ENV = "OTC_MACHINE_STORAGE_PATH"

_SECRET_FIELDS = frozenset({"password", "secret_key", "token"})

console = Console()
err_console = Console(stderr=True)

type Handler = Callable[[argparse.Namespace, MachineStore, ClientFactory | None], None]


def _dest(flag: Flag) -> str:
    return flag.name.replace("-", "_")


def _add_create_flags(parser: argparse.ArgumentParser) -> None:
    for flag in CREATE_FLAGS:
        help_text = f"{flag.usage} [${flag.env_var}]" if flag.env_var else flag.usage
        if flag.kind is bool:
            parser.add_argument(f"--{flag.name}", dest=_dest(flag), action="store_true", default=None, help=help_text)
        else:
            parser.add_argument(f"--{flag.name}", dest=_dest(flag), type=flag.kind, default=None, help=help_text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otc-machine", description="Manage Open Telekom Cloud docker hosts")
    parser.add_argument(
        "--storage-path",
        type=Path,
        default=Path(os.environ.get(STORAGE_PATH_ENV, DEFAULT_STORAGE_PATH)),
        help=f"Machine storage directory [${STORAGE_PATH_ENV}]",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a machine")
    create.add_argument("name")
    _add_create_flags(create)

    rm = sub.add_parser("rm", help="Remove a machine and its driver-created resources")
    rm.add_argument("name")
    rm.add_argument("-f", "--force", action="store_true", help="Forget the machine even if teardown fails")

    for command, help_text in (
        ("start", "Start a machine"),
        ("stop", "Stop a machine"),
        ("restart", "Restart a machine"),
        ("kill", "Kill a machine"),
        ("status", "Show machine status"),
        ("ip", "Show machine IP address"),
        ("url", "Show docker URL of a machine"),
        ("inspect", "Show stored machine state"),
    ):
        sub.add_parser(command, help=help_text).add_argument("name")

    sub.add_parser("ls", help="List machines")
    return parser


def _open(store: MachineStore, name: str, client_factory: ClientFactory | None) -> Driver:
    return Driver(name, store.root, state=store.load(name), client_factory=client_factory)


# =============================================================================
# Commands
# =============================================================================


def cmd_create(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    if store.exists(args.name):
        raise OtcMachineError(f"machine {args.name!r} already exists")

    overrides: dict[str, Any] = {flag.name: getattr(args, _dest(flag)) for flag in CREATE_FLAGS}
    options = DriverOptions.from_env(os.environ, overrides)

    driver = Driver(args.name, store.root, client_factory=client_factory)
    driver.set_config_from_flags(options)
    try:
        driver.create()
    finally:
        # Keep whatever was created so `rm` can find it
        store.save(driver.state)
    if driver.state.floating_ip.present:
        console.print(f"[green]✓[/green] Machine [bold]{args.name}[/bold] is running at {driver.get_url()}")
    else:
        console.print(f"[green]✓[/green] Machine [bold]{args.name}[/bold] is running, no address reported")


def cmd_rm(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    driver = _open(store, args.name, client_factory)
    try:
        driver.remove()
    except TeardownError as e:
        if not args.force:
            raise
        err_console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")
    store.remove(args.name)
    console.print(f"[green]✓[/green] Removed [bold]{args.name}[/bold]")


def _power(operation: str) -> Handler:
    def handler(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
        driver = _open(store, args.name, client_factory)
        getattr(driver, operation)()
        store.save(driver.state)
        console.print(f"[green]✓[/green] {operation.capitalize()} [bold]{args.name}[/bold]")

    return handler


def cmd_status(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    console.print(_open(store, args.name, client_factory).get_state().value)


def cmd_ip(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    console.print(_open(store, args.name, client_factory).get_ip())


def cmd_url(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    console.print(_open(store, args.name, client_factory).get_url())


def cmd_inspect(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    state = store.load(args.name)
    console.print_json(data=state.model_dump(mode="json", by_alias=True, exclude=set(_SECRET_FIELDS)))


def cmd_ls(args: argparse.Namespace, store: MachineStore, client_factory: ClientFactory | None) -> None:
    table = Table("NAME", "INSTANCE", "ADDRESS", "URL")
    for name in store.list():
        driver = _open(store, name, client_factory)
        address = driver.state.floating_ip.value
        url = driver.get_url() if address else ""
        table.add_row(name, driver.state.instance_id or "-", address or "-", url or "-")
    console.print(table)


COMMANDS: dict[str, Handler] = {
    "create": cmd_create,
    "rm": cmd_rm,
    "start": _power("start"),
    "stop": _power("stop"),
    "restart": _power("restart"),
    "kill": _power("kill"),
    "status": cmd_status,
    "ip": cmd_ip,
    "url": cmd_url,
    "inspect": cmd_inspect,
    "ls": cmd_ls,
}


def main(argv: Sequence[str] | None = None, *, client_factory: ClientFactory | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    handler_ids = setup_logging(LogConfig(level="DEBUG" if args.debug else "INFO", file=args.log_file))
    try:
        COMMANDS[args.command](args, MachineStore(args.storage_path), client_factory)
    except (OtcMachineError, OSError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    finally:
        teardown_logging(handler_ids)
    return 0


def cli() -> None:
    sys.exit(main())
