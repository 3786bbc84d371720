# src/cli/runner.py

"""Headless CLI commands built on the boundary service."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.table import Table

from src.models.api_response import ApiResponse
from src.services.bootstrap import Services

logger = logging.getLogger("trustmart.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _score_style(score: int) -> str:
    if score >= 75:
        return "green"
    if score >= 45:
        return "yellow"
    return "red"


def _emit(
    resp: ApiResponse,
    output_format: str,
    render_table: Callable[[dict[str, Any]], None] | None = None,
) -> int:
    """Print an envelope as JSON or a table; return the exit code."""
    if not resp.ok:
        _err.print(f"[red]✗ {resp.status_code}: {resp.message}[/red]")
        if output_format == "json":
            json.dump(resp.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
            sys.stdout.write("\n")
        return 1

    _err.print(f"[green]✓ {resp.message}[/green]")
    if output_format == "table" and render_table is not None:
        render_table(resp.payload)
    else:
        json.dump(resp.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    return 0


# ── Table renderers ──────────────────────────────────────


def _print_products(payload: dict[str, Any]) -> None:
    table = Table(title="Products", show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Name", max_width=40)
    table.add_column("Category", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Rating", justify="center")
    table.add_column("Trust", justify="right")
    table.add_column("Flag", justify="center")

    for idx, p in enumerate(payload.get("products", []), 1):
        ratings = p["ratings"]
        table.add_row(
            str(idx),
            p["id"],
            p["name"][:40],
            p["category"],
            f"₹{p['price']:,.2f}",
            f"{ratings['average']:.2f} ({ratings['count']})",
            f"[{_score_style(p['trustScore'])}]{p['trustScore']}[/]",
            "🚩" if p["isFlagged"] else "—",
        )
    Console().print(table)


def _print_dashboard(payload: dict[str, Any]) -> None:
    _print_products({"products": payload.get("products", [])})
    table = Table(
        title="Flagged Reviews", show_lines=True, title_style="bold cyan",
    )
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Product", style="dim", overflow="fold")
    table.add_column("Rating", justify="center")
    table.add_column("Comment", max_width=50)
    table.add_column("Trust", justify="right")
    table.add_column("Approved", justify="center")
    for r in payload.get("reviews", []):
        table.add_row(
            r["id"],
            r["product"],
            "★" * r["rating"],
            r["comment"][:50],
            f"[{_score_style(r['trustScore'])}]{r['trustScore']}[/]",
            "✓" if r["approvedByModerator"] else "—",
        )
    Console().print(table)


def _print_report(payload: dict[str, Any]) -> None:
    console = Console()
    if "analysis" in payload:
        a = payload["analysis"]
        verdict = "[red]FAKE[/red]" if a["isFake"] else "[green]GENUINE[/green]"
        console.print(
            f"{verdict}  confidence {a['confidence']}%  "
            f"trust {payload['trustScore']}"
        )
        for reason in a["reasons"]:
            console.print(f"  • {reason}")
        if a.get("error"):
            console.print(f"[red]Error: {a['error']}[/red]")
        return

    report = payload["report"]
    score = report["trustScore"]
    console.print(
        f"[bold]{report['productName']}[/bold]  "
        f"[{_score_style(score)}]{score}/100[/]"
    )
    console.print(report["summary"])

    table = Table(title="Verification", show_lines=True, title_style="bold cyan")
    table.add_column("Check", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Sub-score", justify="right")
    table.add_column("Findings", overflow="fold")
    for key, check in report["verification"].items():
        label = check.get("status") or check.get("quality") or check.get("authenticity")
        table.add_row(
            key.removesuffix("Check"),
            str(label),
            f"{check['subScore']:.2f}",
            check["findings"],
        )
    console.print(table)

    for flag in report["redFlags"]:
        console.print(f"[red]🚩 {flag}[/red]")
    for note in report["notes"]:
        console.print(f"[dim]{note}[/dim]")
    if report.get("error"):
        console.print(f"[red]Error: {report['error']}[/red]")


# ── Commands ─────────────────────────────────────────────


def run_products(
    services: Services, category: str | None, output_format: str,
) -> int:
    service = services.service
    resp = (
        service.list_products_by_category(category)
        if category
        else service.list_products()
    )
    return _emit(resp, output_format, _print_products)


def run_flagged(services: Services, output_format: str) -> int:
    return _emit(services.service.dashboard(), output_format, _print_dashboard)


def run_add_review(
    services: Services,
    product_id: str,
    user_id: str,
    rating: str,
    comment: str,
    output_format: str,
) -> int:
    resp = services.service.submit_review(product_id, user_id, rating, comment)
    return _emit(resp, output_format)


def run_moderation(
    services: Services,
    action: str,
    kind: str,
    entity_id: str,
    output_format: str,
) -> int:
    """Run ``approve``, ``dismiss`` or ``clear-flag`` on one entity."""
    service = services.service
    if action == "approve":
        resp = service.approve(kind, entity_id)
    elif action == "dismiss":
        resp = service.dismiss(kind, entity_id)
    else:
        resp = service.clear_flag(kind, entity_id)
    for warning in resp.payload.get("warnings", []):
        _err.print(f"[yellow]⚠ {warning}[/yellow]")
    return _emit(resp, output_format)


async def run_analyze(
    services: Services,
    kind: str,
    entity_id: str,
    save_score: bool,
    output_format: str,
) -> int:
    """Analyse a product or review and archive the report."""
    service = services.service
    kind = kind.strip().lower()
    _err.print(f"[bold]Analyzing {kind}[/bold] {entity_id} ...")
    if kind == "product":
        resp = await service.analyze_product(entity_id, save_score)
        report = resp.payload.get("report")
    elif kind == "review":
        resp = await service.analyze_review(entity_id, save_score)
        report = resp.payload.get("analysis")
    else:
        _err.print(f"[red]Unknown kind '{kind}' (product or review)[/red]")
        return 2

    if resp.ok and report is not None:
        try:
            path = services.archive.save_report(kind, entity_id, report)
            _err.print(f"[dim]Saved report → {path}[/dim]")
        except OSError as exc:
            logger.error("Save failed: %s", exc, exc_info=True)
            _err.print(f"[red]Save failed: {exc}[/red]")
    return _emit(resp, output_format, _print_report)


def run_import_catalog(
    services: Services, catalog_file: str, output_format: str,
) -> int:
    """Import products from a JSON array file."""
    path = Path(catalog_file)
    try:
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        _err.print(f"[red]Could not read {path}: {exc}[/red]")
        return 1
    if not isinstance(rows, list):
        _err.print("[red]Catalog file must contain a JSON array.[/red]")
        return 1
    resp = services.service.import_catalog(rows)
    if resp.ok and resp.payload.get("dropped"):
        _err.print(
            f"[yellow]{resp.payload['dropped']} invalid rows skipped "
            "(see log)[/yellow]"
        )
    return _emit(resp, output_format)


async def run_health_check(services: Services) -> int:
    """Run connectivity health check on the store and providers."""
    _err.print("[bold]Running health check...[/bold]")
    results = await services.health.check_all()

    table = Table(
        title="Component Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Component", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        elif r.status == "missing":
            status = "[dim]➖ NOT CONFIGURED[/dim]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.source_id, status, latency, r.message,
        )

    Console().print(table)
    return 1 if any_down else 0
