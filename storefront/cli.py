# storefront/cli.py
import click
import pandas as pd

from .errors import StorefrontError
from .extensions import db
from .model import Product
from .services import coupon_service
from .utils.money import D

PRODUCT_COLUMNS = {"Name": "name", "Price": "price", "Stock Quantity": "stock_quantity"}


@click.command("create-coupon")
@click.option("--code", required=True)
@click.option("--type", "discount_type", type=click.Choice(["Percentage", "FixedAmount"]), default="Percentage")
@click.option("--amount", required=True)
@click.option("--minimum", default="0")
@click.option("--start", required=True, help="ISO-8601 start date")
@click.option("--end", required=True, help="ISO-8601 end date")
@click.option("--usage-limit", type=int, default=None)
def create_coupon(code, discount_type, amount, minimum, start, end, usage_limit):
    try:
        c = coupon_service.create_coupon({
            "code": code,
            "discount_type": discount_type,
            "discount_amount": amount,
            "minimum_order_amount": minimum,
            "start_date": start,
            "end_date": end,
            "usage_limit": usage_limit,
        })
    except StorefrontError as e:
        raise click.ClickException(e.message)
    click.echo(f"Coupon created: {c.id} {c.code}")


@click.command("import-products")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_products(path):
    """Seed the catalog from a CSV or Excel sheet (columns: Name, Price, Stock Quantity)."""
    df = pd.read_excel(path) if path.lower().endswith((".xlsx", ".xls")) else pd.read_csv(path)
    df.columns = df.columns.str.strip()

    missing = [c for c in PRODUCT_COLUMNS if c not in df.columns]
    if missing:
        raise click.ClickException(f"missing columns: {', '.join(missing)}")

    df = df.dropna(subset=["Name"])
    count = 0
    for _, row in df.iterrows():
        db.session.add(Product(
            name=str(row["Name"]).strip(),
            price=D(row["Price"]),
            stock_quantity=int(row["Stock Quantity"]) if pd.notnull(row["Stock Quantity"]) else 0,
        ))
        count += 1
    db.session.commit()
    click.echo(f"{count} products imported from {path}")


def register_cli(app):
    app.cli.add_command(create_coupon)
    app.cli.add_command(import_products)
