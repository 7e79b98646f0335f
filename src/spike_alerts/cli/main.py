"""CLI for the background entry point and for inspecting persisted state.

Usage:
  spike-alerts-run-once
  spike-alerts-cli run-once
  spike-alerts-cli alerts list --symbol BTCUSDT --limit 10
  spike-alerts-cli alerts clear
  spike-alerts-cli settings show
  spike-alerts-cli settings set thresholdPct=5 symbols=BTCUSDT,ETHUSDT
  spike-alerts-cli history BTCUSDT
  spike-alerts-cli interval
  spike-alerts-cli status --base-url http://localhost:8001
"""
import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable

import httpx

from spike_alerts.config import AppConfig, configure_logging
from spike_alerts.schemas import RunResult
from spike_alerts.services import (EngineContext, create_context,
                                   minimum_interval_seconds, run_once)
from spike_alerts.settings import normalize_settings

Command = Callable[[EngineContext, argparse.Namespace], Awaitable[int]]


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def parse_assignments(pairs: list[str]) -> dict[str, object]:
    """Turn ``key=value`` arguments into a settings patch; values are JSON when they parse."""
    patch: dict[str, object] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{pair}'")
        try:
            patch[key] = json.loads(value)
        except json.JSONDecodeError:
            patch[key] = value
    return patch


async def cmd_run_once(context: EngineContext, _: argparse.Namespace) -> int:
    result = await run_once(context)
    return 0 if result is RunResult.SUCCESS else 1


async def cmd_alerts_list(context: EngineContext, args: argparse.Namespace) -> int:
    alerts = await context.store.load_alerts()
    if args.symbol:
        alerts = [a for a in alerts if a.symbol == args.symbol.upper()]
    if args.limit:
        alerts = alerts[: args.limit]
    print(f"Found {len(alerts)} alerts")
    print_json([a.model_dump(mode="json", by_alias=True) for a in alerts])
    return 0


async def cmd_alerts_clear(context: EngineContext, _: argparse.Namespace) -> int:
    return 0 if await context.store.clear_alerts() else 1


async def cmd_settings_show(context: EngineContext, _: argparse.Namespace) -> int:
    settings = await context.store.load_settings()
    print_json(settings.model_dump(mode="json", by_alias=True))
    return 0


async def cmd_settings_set(context: EngineContext, args: argparse.Namespace) -> int:
    current = await context.store.load_settings()
    raw = current.model_dump(mode="json", by_alias=True)
    raw.update(parse_assignments(args.assignments))
    settings = normalize_settings(raw)
    if not await context.store.save_settings(settings):
        print("Failed to save settings", file=sys.stderr)
        return 1
    await context.store.restrict_to_symbols(settings, context.clock())
    print_json(settings.model_dump(mode="json", by_alias=True))
    return 0


async def cmd_history(context: EngineContext, args: argparse.Namespace) -> int:
    history = await context.store.load_history()
    points = history.get(args.symbol.upper(), [])
    print(f"Found {len(points)} history points for {args.symbol.upper()}")
    print_json([p.model_dump(mode="json") for p in points])
    return 0


async def cmd_interval(context: EngineContext, _: argparse.Namespace) -> int:
    settings = await context.store.load_settings()
    print(minimum_interval_seconds(settings))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """GET /status from a running server."""
    try:
        with httpx.Client(base_url=args.base_url.rstrip("/"), timeout=args.timeout) as client:
            r = client.get("/status")
            r.raise_for_status()
            print_json(r.json())
            return 0
    except httpx.HTTPStatusError as e:
        print(f"HTTP error: {e.response.status_code}", file=sys.stderr)
        return 1
    except httpx.RequestError as e:
        print(f"Request error: {e}", file=sys.stderr)
        return 1


async def _run_command(handler: Command, args: argparse.Namespace, config: AppConfig) -> int:
    context = create_context(config)
    try:
        return await handler(context, args)
    finally:
        await context.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Price spike alerts: background run and state inspection.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    subparsers.add_parser("run-once", help="Run a single background cycle")

    alerts = subparsers.add_parser("alerts", help="Stored alerts")
    alerts_sub = alerts.add_subparsers(dest="alerts_cmd", required=True)
    p = alerts_sub.add_parser("list", help="List stored alerts, newest first")
    p.add_argument("--symbol", default=None, help="Only alerts for this symbol")
    p.add_argument("--limit", type=int, default=0, help="Show only first N (0 = all)")
    alerts_sub.add_parser("clear", help="Remove stored alerts and reset cooldowns")

    settings = subparsers.add_parser("settings", help="User settings")
    settings_sub = settings.add_subparsers(dest="settings_cmd", required=True)
    settings_sub.add_parser("show", help="Print the normalised settings")
    p = settings_sub.add_parser("set", help="Update settings fields (camelCase keys)")
    p.add_argument("assignments", nargs="+", metavar="KEY=VALUE")

    p = subparsers.add_parser("history", help="Retained window points for a symbol")
    p.add_argument("symbol", help="Ticker symbol (e.g. BTCUSDT)")

    subparsers.add_parser("interval", help="Background scheduler interval in seconds")

    p = subparsers.add_parser("status", help="GET /status from a running server")
    p.add_argument("--base-url", default="http://localhost:8001", help="API base URL")
    p.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    return parser


HANDLERS: dict[str, Command | dict[str, Command]] = {
    "run-once": cmd_run_once,
    "alerts": {"list": cmd_alerts_list, "clear": cmd_alerts_clear},
    "settings": {"show": cmd_settings_show, "set": cmd_settings_set},
    "history": cmd_history,
    "interval": cmd_interval,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig()
    configure_logging(config.log_level)

    if args.command == "status":
        return cmd_status(args)

    handler = HANDLERS[args.command]
    if isinstance(handler, dict):
        handler = handler[getattr(args, f"{args.command}_cmd")]
    try:
        return asyncio.run(_run_command(handler, args, config))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


def run_once_main() -> None:
    """Entry point for OS schedulers: exit 0 on success, 1 on failure."""
    sys.exit(main(["run-once"]))


if __name__ == "__main__":
    sys.exit(main())
