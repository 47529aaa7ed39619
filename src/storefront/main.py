import asyncio

from rich.console import Console
from rich.table import Table

from storefront.app import Storefront, create_app
from storefront.utils.pure import format_cents

STATUS_STYLES = {
    "in_stock": "green",
    "low_stock": "yellow",
    "out_of_stock": "red",
}


async def render_catalog(app: Storefront) -> Table:
    table = Table(title="Catalog")
    table.add_column("ID", justify="right")
    table.add_column("Product")
    table.add_column("Category")
    table.add_column("Price", justify="right")
    table.add_column("Stock", justify="right")
    for listing in await app.catalog.list_products():
        p = listing.product
        style = STATUS_STYLES[listing.stock_status]
        table.add_row(
            str(p.id),
            p.name,
            p.category,
            f"{format_cents(p.price)}/{p.unit}",
            f"[{style}]{p.stock}[/]",
        )
    return table


async def run() -> None:
    app = await create_app()
    Console().print(await render_catalog(app))


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
