from __future__ import annotations

import json
import subprocess
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import typer
from dateutil import parser as dt_parser
from rich import print, print_json

from storefront.config import Settings
from storefront.core.db import StorefrontRepository
from storefront.core.logging import configure_logging, get_logger
from storefront.core.models import CartItem
from storefront.errors import StorefrontError
from storefront.services import (
    CatalogSeeder,
    FulfillmentService,
    ManualOrderService,
    OrderQueryService,
    ShippingService,
    WebhookHandler,
    export_orders,
    run_doctor_checks,
)
from storefront.sources import CheckoutGateway, FakeCheckoutGateway
from storefront.sources.stripe import StripeCheckoutGateway

app = typer.Typer(no_args_is_help=True, help="Storefront CLI: order fulfillment, stock and shipping")


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


def _open_repository(settings: Settings) -> StorefrontRepository:
    repository = StorefrontRepository(settings.db_path, timeout_sec=settings.db_timeout_sec)
    repository.migrate()
    return repository


def _parse_since(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = dt_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_item(value: str) -> CartItem:
    product_id, sep, quantity = value.rpartition(":")
    if not sep:
        product_id, quantity = value, "1"
    try:
        parsed_quantity = int(quantity)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid quantity in {value!r}") from exc
    if not product_id.strip() or parsed_quantity <= 0:
        raise typer.BadParameter(f"Expected productId:quantity, got {value!r}")
    return CartItem(product_id=product_id.strip(), quantity=parsed_quantity)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def _gateway(settings: Settings) -> CheckoutGateway:
    if settings.stripe_webhook_secret:
        return StripeCheckoutGateway(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            tolerance_sec=settings.stripe_webhook_tolerance_sec,
        )
    return FakeCheckoutGateway()


@app.command("init")
def init_command(
    base_dir: Path | None = typer.Option(None, help="Project root (defaults to the current directory)"),
) -> None:
    settings = _load_settings(base_dir=base_dir)
    with StorefrontRepository(settings.db_path, timeout_sec=settings.db_timeout_sec) as repository:
        executed = repository.migrate()
    print(f"[green]Initialized[/green]. DB: {settings.db_path}")
    print(f"Migrations: {executed if executed else 'none pending'}")


@app.command("seed")
def seed_command(
    catalog: Path | None = typer.Option(None, help="JSON file with products and shippingZones"),
) -> None:
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("storefront.seed", correlation_id)

    with _open_repository(settings) as repository:
        seeder = CatalogSeeder(repository=repository, logger=logger)
        try:
            counts = seeder.load_catalog(catalog) if catalog else {"products": 0, "zones": 0}
        except StorefrontError as exc:
            print(f"[red]Seed failed[/red]: {exc}")
            raise typer.Exit(1) from exc
        created = seeder.ensure_default_shipping_zone()

    print(f"[green]Seed complete[/green]. correlation_id={correlation_id}")
    print(f"- products: {counts['products']}")
    print(f"- zones: {counts['zones']}")
    print(f"- default zone created: {created}")


@app.command("webhook")
def webhook_command(
    payload: Path = typer.Option(..., exists=True, dir_okay=False, help="Raw webhook body"),
    signature: str | None = typer.Option(None, help="Stripe-Signature header value"),
) -> None:
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("storefront.webhook", correlation_id)

    with _open_repository(settings) as repository:
        handler = WebhookHandler(
            repository=repository,
            gateway=_gateway(settings),
            fulfillment=FulfillmentService(repository=repository, logger=logger),
            logger=logger,
        )
        response = handler.handle(payload.read_bytes(), signature)

    print(f"HTTP {response.status_code}")
    print_json(data=response.body)
    if response.status_code >= 400:
        raise typer.Exit(1)


@app.command("manual-order")
def manual_order_command(
    request: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON order request"),
) -> None:
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("storefront.manual_order", correlation_id)

    body = _read_json(request)
    if not isinstance(body, dict):
        raise typer.BadParameter("Order request must be a JSON object")

    with _open_repository(settings) as repository:
        service = ManualOrderService(
            repository=repository,
            fulfillment=FulfillmentService(repository=repository, logger=logger),
            logger=logger,
        )
        try:
            order = service.create(body)
        except StorefrontError as exc:
            print(f"[red]Order rejected[/red]: {exc}")
            raise typer.Exit(1) from exc

    print_json(data=order)


@app.command("shipping")
def shipping_command(
    item: list[str] = typer.Option(..., "--item", help="productId:quantity, repeatable"),
    country: str | None = typer.Option(None, help="ISO country code"),
) -> None:
    items = [_parse_item(value) for value in item]
    settings = _load_settings()
    with _open_repository(settings) as repository:
        quote = ShippingService(repository, default_country=settings.default_country).quote(items, country)
    print_json(data=quote.to_dict())


@app.command("orders")
def orders_command(
    since: str | None = typer.Option(None, help="Only orders created at or after this date/time"),
) -> None:
    since_dt = _parse_since(since)
    settings = _load_settings()
    with _open_repository(settings) as repository:
        orders = OrderQueryService(repository).list_orders(since=since_dt)
    print_json(data=orders)


@app.command("customers")
def customers_command() -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        customers = OrderQueryService(repository).customers()
    print_json(data=customers)


@app.command("inventory")
def inventory_command() -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        products = OrderQueryService(repository).inventory()
    print_json(data=products)


@app.command("export")
def export_command(
    format: str = typer.Option("xlsx,csv", help="Comma-separated formats: xlsx,csv"),
    out: Path | None = typer.Option(None, help="Export directory"),
) -> None:
    formats = [item.strip().lower() for item in format.split(",") if item.strip()]
    supported = {"xlsx", "csv"}
    unknown = [item for item in formats if item not in supported]
    if unknown:
        raise typer.BadParameter(f"Unsupported formats: {unknown}")

    settings = _load_settings()
    out_dir = (out or settings.exports_dir).resolve()

    with _open_repository(settings) as repository:
        files = export_orders(repository=repository, formats=formats, out_dir=out_dir)

    print("[green]Export complete[/green]")
    for file_path in files:
        print(f"- {file_path}")


@app.command("doctor")
def doctor_command() -> None:
    settings = _load_settings()
    checks = run_doctor_checks(settings)

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- \\[{status}] {check['check']}: {check['detail']}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]Tests passed[/green]")


if __name__ == "__main__":
    app()
