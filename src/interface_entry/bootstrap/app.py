from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from business_service.registry.models import NODE_STATUSES, SORT_FIELDS, SORT_ORDERS, QueryState, RegistrySnapshot
from business_service.registry.store import RegistryStore
from foundational_service.integrations.node_api_client import NodeApiClient, NodeApiError, NodeNotFound
from interface_entry.runtime.auto_refresh import AutoRefreshScheduler
from project_utility.config.settings import DashboardSettings, load_dashboard_settings
from project_utility.logging import configure_logging

log = logging.getLogger("interface_entry.app")

CLI_DESCRIPTION = "pNode registry dashboard client"

_TABLE_FIELDS = ("storage_used_gb", "storage_capacity_gb", "uptime_percentage", "latency_ms", "credits")


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=1, help="Page number (default 1)")
    parser.add_argument("--limit", type=int, default=None, help="Page size (default from settings)")
    parser.add_argument("--status", choices=NODE_STATUSES, default=None, help="Only nodes with this status")
    parser.add_argument("--sort", choices=SORT_FIELDS, default=None, help="Sort field")
    parser.add_argument("--order", choices=SORT_ORDERS, default=None, help="Sort order")
    parser.add_argument(
        "--exclude-offline",
        action="store_true",
        help="Ask the backend to omit offline nodes",
    )


def configure_arg_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-url", default=None, help="Backend base URL (overrides settings)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    nodes_parser = subparsers.add_parser("nodes", help="Fetch one page of reconciled nodes")
    _add_query_arguments(nodes_parser)

    node_parser = subparsers.add_parser("node", help="Show a single node by public key")
    node_parser.add_argument("pubkey", help="Node public key")

    watch_parser = subparsers.add_parser("watch", help="Auto-refresh the node listing")
    _add_query_arguments(watch_parser)
    watch_parser.add_argument("--interval", type=float, default=None, help="Seconds between refreshes")
    watch_parser.add_argument("--cycles", type=int, default=None, help="Stop after this many refreshes")


def build_query(args: argparse.Namespace, settings: DashboardSettings) -> QueryState:
    return QueryState(
        page=args.page,
        limit=args.limit or settings.page_limit,
        status=args.status,
        sort=args.sort,
        order=args.order,
        include_offline=settings.include_offline and not args.exclude_offline,
    )


def render_snapshot(snapshot: RegistrySnapshot, console: Console) -> None:
    if snapshot.error:
        console.print(f"[bold red]error:[/] {snapshot.error}")
        return
    table = Table(title="Nodes")
    table.add_column("Pubkey", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Addresses")
    table.add_column("Last seen")
    for name in _TABLE_FIELDS:
        table.add_column(name, justify="right")
    for record in snapshot.nodes:
        table.add_row(
            record.identity,
            record.status,
            ", ".join(record.addresses) or "-",
            "-" if record.last_seen is None else str(record.last_seen),
            *("-" if record.telemetry.get(name) is None else str(record.telemetry[name]) for name in _TABLE_FIELDS),
        )
    console.print(table)
    pagination = snapshot.pagination
    if pagination is not None:
        console.print(
            f"page {pagination.page}/{pagination.total_pages} "
            f"({pagination.total_items} items, limit {pagination.limit})",
            style="dim",
        )


async def _run_nodes(client: NodeApiClient, query: QueryState, console: Console) -> int:
    store = RegistryStore(client, query=query)
    snapshot = await store.fetch()
    render_snapshot(snapshot, console)
    return 1 if snapshot.error else 0


async def _run_node(client: NodeApiClient, pubkey: str, console: Console) -> int:
    try:
        node = await client.get_node(pubkey)
    except NodeNotFound as exc:
        console.print(f"[bold red]{exc}[/]")
        return 1
    except NodeApiError as exc:
        console.print(f"[bold red]error:[/] {exc}")
        return 1
    details: Dict[str, Any] = {
        "pubkey": node.identity,
        "status": node.status,
        "address": node.address or "-",
        "last_seen": node.last_seen,
        **dict(node.telemetry),
    }
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in details.items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)
    return 0


async def _run_watch(
    client: NodeApiClient,
    query: QueryState,
    console: Console,
    *,
    interval: float,
    cycles: Optional[int],
) -> int:
    store = RegistryStore(client, query=query)
    settled = asyncio.Event()
    rendered = 0

    def _on_snapshot(snapshot: RegistrySnapshot) -> None:
        nonlocal rendered
        if snapshot.loading or (snapshot.last_updated is None and snapshot.error is None):
            return
        render_snapshot(snapshot, console)
        rendered += 1
        if cycles is not None and rendered >= cycles:
            settled.set()

    unsubscribe = store.subscribe(_on_snapshot)
    try:
        async with AutoRefreshScheduler(store, interval=interval):
            await settled.wait()
    finally:
        unsubscribe()
    return 1 if store.snapshot.error else 0


async def _dispatch(args: argparse.Namespace, settings: DashboardSettings, console: Console) -> int:
    async with NodeApiClient.from_settings(settings) as client:
        if args.command == "node":
            return await _run_node(client, args.pubkey, console)
        query = build_query(args, settings)
        if args.command == "watch" and not settings.auto_refresh:
            log.warning("auto_refresh.disabled", extra={"endpoint": settings.api_base_url})
        elif args.command == "watch":
            interval = args.interval or settings.refresh_interval
            return await _run_watch(client, query, console, interval=interval, cycles=args.cycles)
        return await _run_nodes(client, query, console)


def handle_cli(args: argparse.Namespace, *, console: Optional[Console] = None) -> int:
    settings = load_dashboard_settings()
    if args.api_url:
        settings = replace(settings, api_base_url=args.api_url.rstrip("/"))
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    console = console or Console()
    log.info("dashboard.start", extra={"endpoint": settings.api_base_url})
    try:
        return asyncio.run(_dispatch(args, settings, console))
    except KeyboardInterrupt:
        return 130


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=CLI_DESCRIPTION)
    configure_arg_parser(parser)
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])
    return handle_cli(args)


__all__ = ["CLI_DESCRIPTION", "build_query", "configure_arg_parser", "handle_cli", "main", "render_snapshot"]
