"""Command line entry point for HarmonyCTL."""

import argparse
import asyncio
import logging
import os
import sys

from harmonyctl import __version__
from harmonyctl.app import run_watch
from harmonyctl.core.cache import CacheStore
from harmonyctl.core.config import ConfigManager
from harmonyctl.core.discovery import DISCOVERY_WINDOW, DiscoveryEngine
from harmonyctl.core.errors import HarmonyError, NetworkError
from harmonyctl.core.manager import ConnectionManager
from harmonyctl.core.notifications import Notifier, print_notification
from harmonyctl.core.session import SessionStore
from harmonyctl.core.validator import validate_hub_response
from harmonyctl.models.hub import Hub

logger = logging.getLogger(__name__)

DEBUG_ENV = "HARMONYCTL_DEBUG"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def debug_requested(flag: bool, config: ConfigManager | None = None) -> bool:
    """Return True if debug logging is enabled by flag, env, or preference."""
    if flag or os.environ.get(DEBUG_ENV, "") == "1":
        return True
    return config is not None and config.get_debug_logging()


def configure_logging(debug: bool) -> None:
    """Set up root logging for the command line."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="harmonyctl",
        description="HarmonyCTL - Logitech Harmony hub controller",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--host", default=None, help="hub IP address (skips discovery)")
    parser.add_argument(
        "--discovery-window",
        type=float,
        default=DISCOVERY_WINDOW,
        help=f"seconds to listen for hubs (default: {DISCOVERY_WINDOW:g})",
    )

    commands = parser.add_subparsers(
        dest="command", help="defaults to the default_view preference (activities or devices)"
    )
    commands.add_parser("discover", help="list hubs on the network")
    commands.add_parser("activities", help="list activities of the hub")
    commands.add_parser("devices", help="list devices and their commands")
    start = commands.add_parser("start", help="start an activity")
    start.add_argument("activity_id")
    send = commands.add_parser("send", help="press and release a device command")
    send.add_argument("device_id")
    send.add_argument("command_id")
    commands.add_parser("clear-cache", help="delete cached hub data and session")
    commands.add_parser("watch", help="stay connected and print state changes until Ctrl+C")
    return parser


def hub_from_host(host: str) -> Hub:
    """Build a hub record for an explicitly given address.

    Raises:
        ValidationError: If ``host`` is not an IPv4 address.
    """
    return validate_hub_response({"uuid": host, "ip": host, "friendlyName": host})


async def resolve_hub(
    manager: ConnectionManager, config: ConfigManager, host: str | None
) -> Hub:
    """Pick the hub to connect to: explicit host, cache, then discovery."""
    if host:
        return hub_from_host(host)

    cached = manager.load_cached_hub_data()
    if cached is not None:
        logger.info("Using cached hub %s", cached.hub.display_name)
        return cached.hub

    hubs = await manager.discover_hubs()
    if not hubs:
        raise NetworkError("No Harmony hubs found on the network")
    last_id = config.get_last_hub_id()
    return next((h for h in hubs if h.id == last_id), hubs[0])


async def run_command(
    args: argparse.Namespace, manager: ConnectionManager, config: ConfigManager
) -> None:
    """Execute one command line action against ``manager``."""
    action = args.command or config.get_default_view()
    if action == "clear-cache":
        await manager.clear_cache()
        print("Cache cleared")
        return

    if action == "discover":
        for hub in await manager.discover_hubs():
            print(f"{hub.id}\t{hub.ip}\t{hub.friendly_name}")
        return

    hub = await resolve_hub(manager, config, args.host)
    if manager.hub is None or manager.hub.id != hub.id:
        await manager.connect(hub)
    config.set_last_hub_id(hub.id)

    if action == "activities":
        for activity in await manager.get_activities():
            marker = "*" if activity.is_active else " "
            print(f"{marker} {activity.id}\t{activity.label}")
    elif action == "devices":
        for device in await manager.get_devices():
            print(f"{device.id}\t{device.label}\t({device.command_count} commands)")
            for command in device.commands:
                print(f"    {command.id}\t{command.label}")
    elif action == "start":
        await manager.start_activity(args.activity_id)
        print(f"Started activity {args.activity_id}")
    elif action == "send":
        await manager.execute_command(args.device_id, args.command_id)
        print(f"Sent {args.command_id} to {args.device_id}")


async def _main_async(
    args: argparse.Namespace, manager: ConnectionManager, config: ConfigManager
) -> None:
    try:
        await run_command(args, manager, config)
    finally:
        try:
            await manager.disconnect()
        except HarmonyError as e:
            logger.debug("Error disconnecting: %s", e)


def _watch(args: argparse.Namespace) -> int:
    try:
        hub = hub_from_host(args.host) if args.host else None
    except HarmonyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return run_watch(hub, DiscoveryEngine(window=args.discovery_window))


def main(argv: list[str] | None = None) -> int:
    """Run the HarmonyCTL command line.

    Returns:
        Exit code (0 for success, 1 on failure).
    """
    args = build_parser().parse_args(argv)

    config = ConfigManager()
    configure_logging(debug_requested(args.debug, config))

    if args.command == "watch":
        return _watch(args)

    notifier = Notifier()
    notifier.notification.connect(print_notification)
    sessions = SessionStore(config, notifier)
    cache = CacheStore(config)
    manager = ConnectionManager.from_config(
        config, sessions, cache, DiscoveryEngine(window=args.discovery_window)
    )

    try:
        asyncio.run(_main_async(args, manager, config))
    except HarmonyError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
