# price_watch/cli/runner.py

"""Headless CLI commands over ProductService and BatchRefreshJob."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from price_watch.errors import PriceWatchError
from price_watch.models.product import Product
from price_watch.services.batch_refresh import (
    RefreshSummary,
    refresh_stale_products,
)
from price_watch.services.product_service import ProductService
from price_watch.storage.product_store import ProductStore

logger = logging.getLogger("price_watch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _product_to_dict(p: Product) -> dict[str, object]:
    """Serialise a product for JSON output."""
    return {
        "id": p.id,
        "name": p.name,
        "store": p.store,
        "current_price": p.current_price,
        "previous_price": p.previous_price,
        "price_change": p.price_change,
        "is_on_sale": p.is_on_sale,
        "is_estimated": p.is_estimated,
        "price_target": p.price_target,
        "target_reached": p.target_reached,
        "last_checked": (
            p.last_checked.isoformat() if p.last_checked else None
        ),
        "url": p.url,
        "image_url": p.image_url,
    }


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _format_price(price: float | None) -> str:
    return f"R$ {price:,.2f}" if price is not None else "—"


def _print_products(products: list[Product]) -> None:
    """Render a Rich table of products to stdout."""
    table = Table(
        title="Monitored Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Name", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Previous", justify="right", style="dim")
    table.add_column("Change", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Store", style="magenta")

    for p in products:
        change = p.price_change
        if change < 0:
            change_str = f"[green]{change:+.2f}%[/green]"
        elif change > 0:
            change_str = f"[red]{change:+.2f}%[/red]"
        else:
            change_str = "—"
        target = _format_price(p.price_target)
        if p.target_reached:
            target = f"[bold green]{target} ✓[/bold green]"
        table.add_row(
            str(p.id),
            p.name[:50],
            (
                "[yellow]pending[/yellow]"
                if p.is_estimated
                else _format_price(p.current_price)
            ),
            _format_price(p.previous_price),
            change_str,
            target,
            p.store,
        )

    Console().print(table)


def run_add(
    store: ProductStore,
    user_id: str,
    url: str | None,
    search_term: str | None,
    store_id: str | None,
    output_format: str = "json",
) -> int:
    """Scrape and add one product; return an exit code."""
    target = url or f"'{search_term}' in {store_id}"
    _err.print(f"[bold]Adding:[/bold] {target}")

    result = ProductService(store).scrape_and_add_product(
        user_id, url=url, search_term=search_term, store=store_id
    )
    if not result.success or result.product is None:
        _err.print(f"[red]Error: {result.error}[/red]")
        if result.conflict is not None:
            _err.print(
                f"[dim]Existing product #{result.conflict.id}: "
                f"{result.conflict.url}[/dim]"
            )
        return 1

    if result.estimated:
        _err.print(
            "[yellow]Price could not be read; stored an "
            "estimate until the next refresh.[/yellow]"
        )
    _err.print(f"[green]✓ Added #{result.product.id}[/green]")

    if output_format == "table":
        _print_products([result.product])
    else:
        payload = _product_to_dict(result.product)
        payload["estimated"] = result.estimated
        _dump_json(payload)
    return 0


def _print_summary(summary: RefreshSummary) -> None:
    table = Table(
        title="Price Refresh",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Name", max_width=50)
    table.add_column("Status", justify="center")
    table.add_column("Notes", style="dim")

    for r in summary.results:
        if not r.success:
            status = "[red]FAILED[/red]"
            notes = r.error or ""
        elif r.price_changed:
            status = "[green]CHANGED[/green]"
            notes = "target reached" if r.target_reached else ""
        else:
            status = "OK"
            notes = ""
        table.add_row(str(r.product_id), r.name[:50], status, notes)

    Console().print(table)


async def run_refresh(
    store: ProductStore, output_format: str = "json",
) -> int:
    """Refresh the stalest batch; exit code 1 only on total failure."""
    _err.print("[bold]Refreshing stale products...[/bold]")
    summary = await refresh_stale_products(store)

    status = f"[green]✓ {summary.updated} updated[/green]"
    if summary.failed:
        status += f", [red]{summary.failed} failed[/red]"
    _err.print(status)
    if output_format == "table":
        _print_summary(summary)
    else:
        _dump_json(
            {
                "updated": summary.updated,
                "results": [
                    {
                        "id": r.product_id,
                        "name": r.name,
                        "success": r.success,
                        "price_changed": r.price_changed,
                        "error": r.error,
                        "target_reached": r.target_reached,
                    }
                    for r in summary.results
                ],
            }
        )
    if summary.results and summary.updated == 0:
        return 1
    return 0


def run_list(
    store: ProductStore, user_id: str, output_format: str = "json",
) -> int:
    """List a user's products."""
    products = ProductService(store).list_products(user_id)
    if not products:
        _err.print("[yellow]No products monitored.[/yellow]")
    if output_format == "table":
        if products:
            _print_products(products)
    else:
        _dump_json([_product_to_dict(p) for p in products])
    return 0


def run_history(
    store: ProductStore, product_id: int, output_format: str = "json",
) -> int:
    """Show one product's price timeline."""
    product = store.get_product(product_id)
    if product is None:
        _err.print(f"[red]Product {product_id} not found.[/red]")
        return 1

    if output_format == "table":
        table = Table(
            title=f"Price History: {product.name[:60]}",
            title_style="bold cyan",
        )
        table.add_column("Checked At", style="dim")
        table.add_column("Price", justify="right", style="green")
        for entry in product.price_history:
            table.add_row(
                entry.checked_at.strftime("%Y-%m-%d %H:%M"),
                _format_price(entry.price),
            )
        Console().print(table)
    else:
        _dump_json(
            [
                {
                    "price": e.price,
                    "checked_at": e.checked_at.isoformat(),
                }
                for e in product.price_history
            ]
        )
    return 0


def run_target(
    store: ProductStore, product_id: int, target: float | None,
) -> int:
    """Set or clear a product's price target."""
    try:
        product = ProductService(store).set_price_target(
            product_id, target
        )
    except PriceWatchError as exc:
        _err.print(f"[red]Error: {exc}[/red]")
        return 1
    if target is None:
        _err.print(f"[green]✓ Target cleared for #{product_id}[/green]")
    else:
        _err.print(
            f"[green]✓ Target for #{product_id} set to "
            f"{_format_price(target)}[/green]"
        )
        if product.target_reached:
            _err.print("[bold green]Already at or below target![/bold green]")
    return 0


def run_remove(store: ProductStore, product_id: int) -> int:
    """Stop monitoring a product."""
    try:
        ProductService(store).remove_product(product_id)
    except PriceWatchError as exc:
        _err.print(f"[red]Error: {exc}[/red]")
        return 1
    _err.print(f"[green]✓ Removed #{product_id}[/green]")
    return 0
