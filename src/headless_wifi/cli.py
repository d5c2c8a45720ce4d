"""Command-line access to the Wi-Fi engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Sequence

from .config import EngineSettings
from .engine import WiFiEngine
from .errors import WiFiError
from .version import APP_VERSION


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the Wi-Fi CLI."""

    parser = argparse.ArgumentParser(
        prog="headless-wifi",
        description="Manage saved Wi-Fi networks and the supplicant configuration",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON for scripting.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("status", help="Show the current connection.")
    commands.add_parser("scan", help="List visible access points.")
    commands.add_parser("list", help="List saved networks.")
    set_parser = commands.add_parser("set", help="Save a network and apply it.")
    set_parser.add_argument("ssid")
    set_parser.add_argument("password", nargs="?", default="")
    set_parser.add_argument(
        "--security",
        default=None,
        help="WPA2, WPA or OPEN (default: OPEN without a password, otherwise WPA2).",
    )
    forget_parser = commands.add_parser("forget", help="Remove a saved network.")
    forget_parser.add_argument("ssid")
    commands.add_parser("auto-switch", help="Switch to a better saved network if visible.")
    commands.add_parser("reload", help="Ask the supplicant to re-read its configuration.")
    render_parser = commands.add_parser("render", help="Print the configuration without applying it.")
    render_parser.add_argument("--target", default=None, help="SSID to prefer.")
    return parser


async def _execute(engine: WiFiEngine, args: argparse.Namespace) -> tuple[object, int]:
    command = args.command
    if command == "status":
        return (await engine.get_status()).to_dict(), 0
    if command == "scan":
        return [result.to_dict() for result in await engine.scan()], 0
    if command == "list":
        return [network.to_dict(include_password=False) for network in engine.list_networks()], 0
    if command == "render":
        return engine.render_config(engine.list_networks(), args.target), 0
    if command == "set":
        change = await engine.set_network(args.ssid, args.password, args.security)
        return change.to_dict(), 0 if change.apply.ok else 2
    if command == "forget":
        change = await engine.forget_network(args.ssid)
        return change.to_dict(), 0 if change.apply.ok else 2
    if command == "auto-switch":
        result = await engine.auto_switch()
        code = 0 if result.apply is None or result.apply.ok else 2
        return result.to_dict(), code
    if command == "reload":
        applied = await engine.reload()
        return applied.to_dict(), 0 if applied.ok else 2
    raise ValueError(f"Unknown command: {command}")


def _print_human(result: object) -> None:
    if isinstance(result, str):
        print(result, end="")
        return
    if isinstance(result, list):
        if not result:
            print("(none)")
        for item in result:
            print(" - " + ", ".join(f"{key}={value}" for key, value in item.items()))
        return
    if isinstance(result, dict):
        for key, value in result.items():
            print(f"{key}: {value}")


def run(argv: Sequence[str] | None = None, *, engine: WiFiEngine | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if engine is None:
        engine = WiFiEngine.from_settings(EngineSettings.from_env())
    try:
        result, code = asyncio.run(_execute(engine, args))
    except WiFiError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        _print_human(result)
    return code


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by ``python -m headless_wifi.cli``."""

    return run(argv)


__all__ = ["build_parser", "main", "run"]


if __name__ == "__main__":  # pragma: no cover - module behaviour
    sys.exit(main())
