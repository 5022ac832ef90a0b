#!/usr/bin/env python3
"""
opstream CLI - watch server operations from the terminal

    opstream watch [--url URL] [--workspace DIR] [--verbose]
    opstream config [--workspace DIR]
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler

from config.loader import StreamConfigLoader
from config.schema import StreamSettings
from core.ledger import OperationRecord, OperationStatus
from core.notifications import CallbackNotificationSink, Toast, Variant
from core.stream import ReconnectOrigin, StreamClient

console = Console()

_VARIANT_STYLE = {
    Variant.SUCCESS: "green",
    Variant.INFO: "cyan",
    Variant.WARNING: "yellow",
    Variant.DANGER: "red",
}

_STATUS_STYLE = {
    OperationStatus.PENDING: "cyan",
    OperationStatus.SUCCESS: "green",
    OperationStatus.ERROR: "red",
}

_RECONNECT_REASON = {
    ReconnectOrigin.UNKNOWN: "Connection lost, reconnecting…",
    ReconnectOrigin.REBOOT: "Server is rebooting, waiting for it to come back…",
    ReconnectOrigin.SHUTDOWN: "Server is shutting down…",
    ReconnectOrigin.UPGRADE_SYSTEM: "System upgrade in progress, waiting for the server…",
}


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def format_timestamp(ms: int | None) -> str:
    if ms is None:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def format_record(record: OperationRecord) -> str:
    style = _STATUS_STYLE[record.status]
    parts = [f"[{style}]{record.status.value:<7}[/{style}]", f"[bold]{record.title}[/bold]"]
    if record.progress:
        done, partial, pending = record.progress
        total = done + partial + pending
        if total:
            parts.append(f"{100 * done // total}%")
    if record.caller:
        parts.append(f"[dim]by {record.caller}[/dim]")
    if record.warnings or record.errors:
        parts.append(f"[yellow]{record.warnings}W[/yellow]/[red]{record.errors}E[/red]")
    parts.append(f"[dim]{format_timestamp(record.started_at)}[/dim]")
    return " ".join(parts)


def print_toast(toast: Toast) -> None:
    style = _VARIANT_STYLE[toast.variant]
    console.print(f"[{style}]● {toast.body}[/{style}]")


def print_ledger_change(kind: str, record: OperationRecord) -> None:
    if kind == "updated":
        if record.messages:
            last = record.messages[-1]
            style = _VARIANT_STYLE[last.variant]
            text = last.text.replace("<br>", "\n  ")
            console.print(f"  [{style}]{text}[/{style}]")
        return
    if kind == "created" and not record.show_modal:
        # History replay: print compactly
        console.print(f"[dim]history[/dim] {format_record(record)}")
        return
    console.print(format_record(record))
    if kind == "closed" and record.error_message:
        console.print(f"  [red]{record.error_message}[/red]")


def print_reconnecting(origin: ReconnectOrigin | None) -> None:
    if origin is None:
        console.print("[green]Connected to event stream[/green]")
    else:
        console.print(f"[yellow]{_RECONNECT_REASON[origin]}[/yellow]")


async def watch(settings: StreamSettings) -> None:
    client = StreamClient(settings, notifier=CallbackNotificationSink(print_toast))
    client.ledger.on_change(print_ledger_change)
    client.on_reconnecting_change(print_reconnecting)

    console.print(f"[dim]Watching {settings.connection.url}[/dim]")
    try:
        await client.start(retry=True)
        # Runs until cancelled; the reconnect loop never gives up
        await asyncio.Event().wait()
    finally:
        await client.dispose()


def cmd_watch(args) -> int:
    overrides: dict = {}
    if args.url:
        overrides.setdefault("connection", {})["url"] = args.url
    if args.insecure:
        overrides.setdefault("connection", {})["verify_tls"] = False
    if args.verbose:
        overrides["logging"] = {"level": "DEBUG"}

    settings = StreamConfigLoader(workspace_root=args.workspace).load(cli_overrides=overrides)
    setup_logging(settings.logging.level)
    try:
        asyncio.run(watch(settings))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
    return 0


def cmd_config(args) -> int:
    settings = StreamConfigLoader(workspace_root=args.workspace).load()
    console.print_json(json.dumps(settings.model_dump(mode="json")))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="opstream", description="Follow server operations over the event stream")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--workspace", help="Project directory containing .opstream/stream.json")
    sub = parser.add_subparsers(dest="command")

    watch_parser = sub.add_parser("watch", parents=[common], help="Stream operations and notifications")
    watch_parser.add_argument("--url", help="Event-stream URL (overrides config)")
    watch_parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    watch_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    watch_parser.set_defaults(func=cmd_watch)

    config_parser = sub.add_parser("config", parents=[common], help="Show the merged configuration")
    config_parser.set_defaults(func=cmd_config)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
