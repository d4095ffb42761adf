"""Sales report CLI.

Commands:
- report: Filter orders, match costs and print/export the financial report
- statuses: List the order statuses found in an order sheet
- fields: Show which columns resolve each logical field
"""

from __future__ import annotations

from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from salesreport.config import get_config
from salesreport.core.logging import configure_logging
from salesreport.fields import ORDER_FIELDS, PRODUCT_FIELDS, Diagnostics, describe_fields
from salesreport.filtering.order_filter import collect_statuses, price_bounds
from salesreport.ingestion.readers import read_records
from salesreport.models import DateRange
from salesreport.pipeline.config_loader import load_rules_file
from salesreport.pipeline.orchestrator import PipelineResult, run_pipeline
from salesreport.reporting.export import (
    RISK_ORDER_COLUMNS,
    SECTIONS,
    export_report,
    risk_order_rows,
)

app = typer.Typer(
    name="salesreport",
    help="Sales report generator - order filtering, cost matching and profit analysis",
    no_args_is_help=True,
)

console = Console()
logger = structlog.get_logger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Configure logging before any command runs."""
    config = get_config()
    configure_logging("DEBUG" if verbose else config.log_level)


def _load(path: Path, label: str) -> list[dict]:
    try:
        records = read_records(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] {label}: {e}")
        raise typer.Exit(code=1)
    console.print(f"  {label}: {len(records)} rows from {path.name}")
    return records


def _print_warnings(diagnostics: Diagnostics) -> None:
    for warning in diagnostics.warnings:
        console.print(f"  [yellow]⚠[/yellow] {warning}")


def _print_report(result: PipelineResult, currency: str) -> None:
    stats = result.filter_result.stats
    totals = result.report.totals

    table = Table(title="Order Filter")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Orders", str(stats.total))
    table.add_row("Kept", str(stats.kept))
    table.add_row("Excluded", str(stats.excluded))
    for reason, count in stats.reasons.items():
        if count:
            table.add_row(f"  excluded: {reason}", str(count))
    table.add_row("All orders amount", f"{currency}{stats.all_amount:,.2f}")
    table.add_row("Kept orders amount", f"{currency}{stats.kept_amount:,.2f}")
    table.add_row("Average kept order", f"{currency}{stats.average_kept_amount:,.2f}")
    console.print(table)

    table = Table(title="Financial Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Matched", f"{totals.matched_count}/{totals.order_count} ({totals.match_rate:.1f}%)")
    table.add_row("Total revenue", f"{currency}{totals.total_revenue:,.2f}")
    table.add_row("Total cost", f"{currency}{totals.total_cost:,.2f}")
    table.add_row("Total profit", f"{currency}{totals.total_profit:,.2f}")
    table.add_row("Profit margin", f"{totals.profit_margin:.2f}%")
    table.add_row("Average order value", f"{currency}{totals.avg_order_value:,.2f}")
    table.add_row("Average profit", f"{currency}{totals.avg_profit:,.2f}")
    console.print(table)

    if result.report.product_breakdown:
        table = Table(title="Top Products by Revenue")
        table.add_column("Product", style="cyan")
        table.add_column("Orders", justify="right")
        table.add_column("Revenue", justify="right", style="green")
        table.add_column("Profit", justify="right")
        for product in result.report.product_breakdown:
            table.add_row(
                product.name,
                str(product.count),
                f"{currency}{product.revenue:,.2f}",
                f"{currency}{product.profit:,.2f}",
            )
        console.print(table)

    table = Table(title="Margin Risk")
    table.add_column("Bucket", style="cyan")
    table.add_column("Orders", justify="right")
    table.add_column("Revenue", justify="right")
    for bucket in result.report.risk_buckets.values():
        table.add_row(bucket.label, str(bucket.count), f"{currency}{bucket.revenue:,.2f}")
    console.print(table)

    rows = risk_order_rows(result.report)
    if rows:
        table = Table(title="Low Margin and Loss Orders")
        table.add_column("Bucket", style="cyan")
        table.add_column("Order ID")
        table.add_column("Product")
        for column in RISK_ORDER_COLUMNS[2:]:
            table.add_column(column, justify="right")
        for row in rows:
            table.add_row(
                row["Bucket"],
                row["Order ID"],
                row["Product"],
                f"{currency}{row['Revenue']:,.2f}",
                f"{currency}{row['Profit']:,.2f}",
                f"{row['Profit margin %']:.2f}%",
            )
        console.print(table)


@app.command()
def report(
    orders_file: Path = typer.Argument(..., help="Order sheet (CSV/XLSX)"),
    products_file: Path = typer.Argument(..., help="Product catalog (CSV/XLSX)"),
    rules: Path | None = typer.Option(None, "--rules", help="YAML rules file"),
    strategy: str | None = typer.Option(None, "--strategy", help="code, name or hybrid"),
    threshold: float | None = typer.Option(None, "--threshold", help="Fuzzy threshold (50-100)"),
    cost_basis: str | None = typer.Option(None, "--cost-basis", help="cost or purchase"),
    keywords: str | None = typer.Option(None, "--exclude-keyword", help="Comma-separated keywords"),
    min_price: float | None = typer.Option(None, "--min-price", help="Minimum order amount"),
    max_price: float | None = typer.Option(None, "--max-price", help="Maximum order amount"),
    start: str | None = typer.Option(None, "--start", help="Earliest creation date (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="Latest creation date (YYYY-MM-DD)"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Export file (.csv/.json/.xlsx)"),
    sections: str = typer.Option(",".join(SECTIONS), "--sections", help="Sections to export"),
):
    """Filter orders, match product costs and report profit."""
    config = get_config()

    if rules is not None:
        try:
            filter_rules, match_settings = load_rules_file(rules, config)
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]✗[/red] Rules: {e}")
            raise typer.Exit(code=1)
    else:
        filter_rules, match_settings = config.filter_rules(), config.match_settings()

    filter_updates: dict = {}
    if keywords is not None:
        filter_updates["exclude_by_keyword"] = keywords
    if min_price is not None or max_price is not None:
        low, high = filter_rules.price_range or price_bounds([])
        filter_updates["price_range"] = (
            min_price if min_price is not None else low,
            max_price if max_price is not None else high,
        )
    if start is not None or end is not None:
        filter_updates["date_range"] = DateRange(start=start or "", end=end or "")
    if filter_updates:
        filter_rules = filter_rules.model_validate({**filter_rules.model_dump(), **filter_updates})

    match_updates: dict = {}
    if strategy is not None:
        match_updates["strategy"] = strategy.lower()
    if threshold is not None:
        match_updates["fuzzy_threshold"] = threshold
    if cost_basis is not None:
        match_updates["cost_basis"] = cost_basis.lower()
    if match_updates:
        try:
            match_settings = match_settings.model_validate(
                {**match_settings.model_dump(), **match_updates}
            )
        except ValueError as e:
            console.print(f"[red]✗[/red] Invalid matching option: {e}")
            raise typer.Exit(code=1)

    console.print("[bold]Loading data[/bold]")
    orders = _load(orders_file, "Orders")
    products = _load(products_file, "Products")

    result = run_pipeline(orders, products, filter_rules, match_settings, config.report)
    _print_warnings(result.diagnostics)
    _print_report(result, config.report.currency_symbol)

    if output is not None:
        try:
            export_report(
                result.enriched,
                result.report,
                output,
                sections=[s.strip() for s in sections.split(",") if s.strip()],
                filter_stats=result.filter_result.stats,
            )
        except ValueError as e:
            console.print(f"[red]✗[/red] Export failed: {e}")
            raise typer.Exit(code=1)
        logger.info("report_exported", path=str(output))
        console.print(f"\n[bold green]✓[/bold green] Report saved to {output}")


@app.command()
def statuses(
    orders_file: Path = typer.Argument(..., help="Order sheet (CSV/XLSX)"),
):
    """List the distinct order statuses in an order sheet."""
    orders = _load(orders_file, "Orders")
    found = collect_statuses(orders)
    if not found:
        console.print("[yellow]No order status column found[/yellow]")
        return
    required = get_config().filter.required_status
    for status in found:
        marker = "[green]✓[/green]" if status == required else " "
        console.print(f"  {marker} {status}")


@app.command()
def fields(
    file: Path = typer.Argument(..., help="Order sheet or product catalog (CSV/XLSX)"),
    products: bool = typer.Option(False, "--products", help="Treat the file as a product catalog"),
):
    """Show which column resolves each logical field."""
    records = _load(file, "Products" if products else "Orders")
    diagnostics = describe_fields(records, PRODUCT_FIELDS if products else ORDER_FIELDS)

    table = Table(title="Field Resolution")
    table.add_column("Field", style="cyan")
    table.add_column("Column")
    for logical, column in diagnostics.fields.items():
        table.add_row(logical, column or "[dim]-[/dim]")
    console.print(table)
    _print_warnings(diagnostics)


if __name__ == "__main__":
    app()
