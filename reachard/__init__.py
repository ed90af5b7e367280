"""Reachard - client for the Reachard uptime monitoring service."""

import argparse
import asyncio
import getpass
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import Config
    from .dashboard import Dashboard

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _load_config_or_exit(args: argparse.Namespace) -> "Config":
    from .config import ConfigError, load_config

    try:
        return load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _run(
    args: argparse.Namespace,
    action: Callable[["Dashboard"], Awaitable[bool]],
    path: Optional[str] = None,
) -> None:
    """Run one dashboard action on a fresh event loop and exit 1 if it failed."""
    from .dashboard import Dashboard
    from .render import TextRenderer
    from .router import History

    _setup_logging(args.verbose)
    config = _load_config_or_exit(args)

    async def main() -> bool:
        dashboard = Dashboard(
            config,
            renderer=TextRenderer(),
            history=History(path) if path is not None else None,
        )
        try:
            return await action(dashboard)
        finally:
            await dashboard.close()

    if not asyncio.run(main()):
        sys.exit(1)


def _cmd_login(args: argparse.Namespace) -> None:
    """Execute the login command - create a session and store its token."""
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    _run(args, lambda d: d.log_in(args.username, password))


def _cmd_logout(args: argparse.Namespace) -> None:
    """Execute the logout command - end the session and forget the token."""
    _run(args, lambda d: d.log_out())


def _cmd_status(args: argparse.Namespace) -> None:
    """Execute the status command - print whether a session token is stored."""

    async def action(dashboard) -> bool:
        await dashboard.refresh_login_status()
        return True

    _run(args, action)


def _cmd_targets(args: argparse.Namespace) -> None:
    """Execute the targets command - list monitored targets."""
    _run(args, lambda d: d.list_targets(own=args.own))


def _cmd_add(args: argparse.Namespace) -> None:
    """Execute the add command - register a new target."""
    if args.interval < 1:
        print("Error: interval must be a positive number of seconds")
        sys.exit(1)
    _run(args, lambda d: d.add_target(args.name, args.url, args.interval))


def _cmd_delete(args: argparse.Namespace) -> None:
    """Execute the delete command - remove a target."""
    _run(args, lambda d: d.delete_target(args.id))


def _cmd_open(args: argparse.Namespace) -> None:
    """Execute the open command - resolve a dashboard path and render its view."""

    async def action(dashboard) -> bool:
        await dashboard.start()
        active = dashboard.router.active
        return active is not None and active.match(args.path) is not None

    _run(args, action, path=args.path)


def main() -> None:
    """Main entry point for the reachard package."""
    parser = argparse.ArgumentParser(
        description="Reachard - client for the Reachard uptime monitoring service"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"reachard {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", parents=[common], help="Log in and store the session token")
    login_parser.add_argument("-u", "--username", required=True, help="Account name")
    login_parser.add_argument("-p", "--password", help="Password (prompted when omitted)")
    login_parser.set_defaults(func=_cmd_login)

    logout_parser = subparsers.add_parser("logout", parents=[common], help="Log out and forget the session token")
    logout_parser.set_defaults(func=_cmd_logout)

    status_parser = subparsers.add_parser("status", parents=[common], help="Show whether you are logged in")
    status_parser.set_defaults(func=_cmd_status)

    targets_parser = subparsers.add_parser("targets", parents=[common], help="List monitored targets")
    targets_parser.add_argument(
        "--own",
        action="store_true",
        help="Only list your own targets",
    )
    targets_parser.set_defaults(func=_cmd_targets)

    add_parser = subparsers.add_parser("add", parents=[common], help="Add a monitored target")
    add_parser.add_argument("name", help="Target name")
    add_parser.add_argument("url", help="URL to monitor")
    add_parser.add_argument(
        "--interval",
        type=int,
        default=60,
        help="Check interval in seconds (default: 60)",
    )
    add_parser.set_defaults(func=_cmd_add)

    delete_parser = subparsers.add_parser("delete", parents=[common], help="Delete a monitored target")
    delete_parser.add_argument("id", type=int, help="Target id")
    delete_parser.set_defaults(func=_cmd_delete)

    open_parser = subparsers.add_parser("open", parents=[common], help="Render the dashboard view for a path")
    open_parser.add_argument("path", help="Dashboard path, e.g. /targets or /target/3")
    open_parser.set_defaults(func=_cmd_open)

    args = parser.parse_args()
    args.func(args)
