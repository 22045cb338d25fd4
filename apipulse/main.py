"""Entry point for API Pulse."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from apipulse.config import settings
from apipulse.costs.service import CostTrackingService
from apipulse.errors import AppError
from apipulse.monitoring.service import MonitoringService
from apipulse.storage import CheckStore, ConnectionStore, CostMetricStore, ResultStore
from apipulse.vault import CredentialVault, generate_key

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

STATUS_STYLES = {"SUCCESS": "green", "FAILURE": "yellow", "TIMEOUT": "magenta", "ERROR": "red"}


def _monitoring() -> MonitoringService:
    return MonitoringService(ConnectionStore(), CheckStore(), ResultStore(), CredentialVault(settings.encryption_key))


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting API Pulse server", style="bold green"))
    uvicorn.run(
        "apipulse.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_due() -> None:
    """One scheduler tick: run every due check and print the batch report."""
    with console.status("[bold green]Probing due checks..."):
        report = _monitoring().run_due_checks()

    table = Table(title=f"Due checks ({report.ready} ready / {report.total_due} due)")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Time", justify="right")
    for r in report.results:
        style = STATUS_STYLES.get(r.status.value, "white")
        table.add_row(r.check_id, f"[{style}]{r.status.value}[/{style}]", str(r.status_code or "-"), f"{r.response_time_ms}ms")
    for check_id, error in report.errors.items():
        table.add_row(check_id, "[red]ABORTED[/red]", "-", error)
    console.print(table)


def run_trigger(check_id: str) -> None:
    result = _monitoring().trigger_check(check_id)
    style = STATUS_STYLES.get(result.status.value, "white")
    console.print(Panel(
        f"{result.metadata.get('method', '')} {result.metadata.get('url', '')}\n"
        f"status code: {result.status_code}  time: {result.response_time_ms}ms\n"
        f"{result.error_message or ''}".rstrip(),
        title=f"{check_id}: {result.status.value}",
        style=style,
    ))


def run_costs(connection_id: str | None) -> None:
    service = CostTrackingService(
        ConnectionStore(), CredentialVault(settings.encryption_key), metrics=CostMetricStore(),
    )
    if connection_id:
        results = {connection_id: service.track_costs_for_connection(connection_id)}
        totals = None
    else:
        summary = service.track_all_active()
        results, totals = summary.results, summary.totals()

    table = Table(title="Provider costs (current month)")
    table.add_column("Connection")
    table.add_column("Provider")
    table.add_column("Amount", justify="right")
    table.add_column("Note")
    for cid, r in results.items():
        if r.success and r.cost_data is not None:
            c = r.cost_data
            table.add_row(cid, c.provider, f"{c.amount:.2f} {c.currency}", str(c.metadata.get("note", "")))
        else:
            table.add_row(cid, "-", "-", f"[red]{r.error}[/red]")
    console.print(table)
    if totals:
        console.print("[bold]Totals:[/bold] " + ", ".join(f"{v:.2f} {k}" for k, v in totals.items()))


def run_seed(path: str) -> None:
    from apipulse.seed import load_seed_file, sync_from_config

    cfg = load_seed_file(Path(path))
    report = sync_from_config(cfg, ConnectionStore(), CheckStore(), CredentialVault(settings.encryption_key))
    console.print(
        f"[green]Connections:[/green] {report.connections_created} created, {report.connections_updated} updated\n"
        f"[green]Checks:[/green] {report.checks_created} created, {report.checks_updated} updated"
    )


def run_cleanup() -> None:
    removed = ResultStore().cleanup_old(days=settings.result_retention_days)
    console.print(f"Removed {removed} results older than {settings.result_retention_days} days")


def main() -> None:
    parser = argparse.ArgumentParser(description="API Pulse — third-party API monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("run-due", help="Run every due check once (call from cron)")

    trigger_parser = sub.add_parser("trigger", help="Run one check now")
    trigger_parser.add_argument("check_id")

    costs_parser = sub.add_parser("costs", help="Track provider costs for the current month")
    costs_parser.add_argument("connection_id", nargs="?", help="Only this connection")

    seed_parser = sub.add_parser("seed", help="Sync connections and checks from a YAML file")
    seed_parser.add_argument("file")

    sub.add_parser("cleanup", help="Delete results past the retention window")
    sub.add_parser("gen-key", help="Print a fresh ENCRYPTION_KEY")

    args = parser.parse_args()

    try:
        if args.command == "serve":
            run_server()
        elif args.command == "run-due":
            run_due()
        elif args.command == "trigger":
            run_trigger(args.check_id)
        elif args.command == "costs":
            run_costs(args.connection_id)
        elif args.command == "seed":
            run_seed(args.file)
        elif args.command == "cleanup":
            run_cleanup()
        elif args.command == "gen-key":
            print(generate_key())
        else:
            parser.print_help()
            sys.exit(1)
    except (AppError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
