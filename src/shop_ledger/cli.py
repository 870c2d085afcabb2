"""Command-line entry points for Shop Ledger.

All orchestration in this module is limited to argparse wiring, turning
arguments into calls on the session's ledger store, report functions and
access control, and printing the results. Argument types are parsed here so
the business layer only ever receives typed values.
"""

from __future__ import annotations

import argparse
import getpass
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, reports, set_console_level
from .constants import MAX_MONEY
from .data_manager import ProductRow, SaleRow
from .session import RuntimeContext, load_runtime_context


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[RuntimeContext, argparse.Namespace], int]


def parse_money(raw: str) -> Decimal:
    """argparse ``type`` converting text into a non-negative amount in cents."""
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise argparse.ArgumentTypeError(f"amount must be zero or positive: {raw!r}")
    if value > MAX_MONEY:
        raise argparse.ArgumentTypeError(f"amount must not exceed {MAX_MONEY}: {raw!r}")
    return core_logic.normalize_money(value)


def parse_date(raw: str) -> date:
    """argparse ``type`` for ``YYYY-MM-DD`` dates."""
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date (expected YYYY-MM-DD): {raw!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="shop-ledger",
        description="Command-line tools for the Shop Ledger inventory and sales workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the current directory by default).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo debug-level log messages to stderr.",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    admin_specs = register_admin_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values(), *admin_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as adding products and recording sales."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_product_command(subparsers),
        "add-staff": register_add_staff_command(subparsers),
        "update-staff": register_update_staff_command(subparsers),
        "delete-staff": register_delete_staff_command(subparsers),
        "sale": register_sale_command(subparsers),
        "delete-sale": register_delete_sale_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "staff": register_staff_command(subparsers),
        "sales": register_sales_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "report": register_report_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_admin_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare PIN-protected administrative commands."""
    specs = {
        "change-pin": register_change_pin_command(subparsers),
        "clear-data": register_clear_data_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _simple_spec(
    name: str,
    help_text: str,
    execute: Callable[[RuntimeContext, argparse.Namespace], int],
    configure: Optional[Callable[[argparse.ArgumentParser], None]] = None,
) -> CommandSpec:
    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        if configure is not None:
            configure(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--category", required=True)
        parser.add_argument("--price", required=True, type=parse_money)
        parser.add_argument("--stock", required=True, type=int)

    return _simple_spec("add-product", "Register a new product.", run_add_product, configure)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--product-id", required=True, type=int)
        parser.add_argument("--name", default=None)
        parser.add_argument("--category", default=None)
        parser.add_argument("--price", default=None, type=parse_money)
        parser.add_argument("--stock", default=None, type=int)

    return _simple_spec("update-product", "Edit an existing product.", run_update_product, configure)


def register_delete_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-product``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--product-id", required=True, type=int)

    return _simple_spec("delete-product", "Delete a product (its sales are kept).", run_delete_product, configure)


def register_add_staff_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-staff``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--email", default="")
        parser.add_argument("--phone", default="")
        parser.add_argument("--address", default="")

    return _simple_spec("add-staff", "Register a new sales staff member.", run_add_staff, configure)


def register_update_staff_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-staff``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--staff-id", required=True, type=int)
        parser.add_argument("--name", default=None)
        parser.add_argument("--email", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--address", default=None)

    return _simple_spec("update-staff", "Edit an existing sales staff member.", run_update_staff, configure)


def register_delete_staff_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-staff``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--staff-id", required=True, type=int)

    return _simple_spec("delete-staff", "Delete a staff member (their sales are kept).", run_delete_staff, configure)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--product-id", required=True, type=int)
        parser.add_argument("--staff-id", required=True, type=int)
        parser.add_argument("--customer", required=True)
        parser.add_argument("--quantity", required=True, type=int)
        parser.add_argument("--date", dest="sale_date", type=parse_date, default=None,
                            help="Sale date as YYYY-MM-DD (default: today).")

    return _simple_spec("sale", "Record a sale.", run_sale, configure)


def register_delete_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-sale``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--sale-id", required=True, type=int)

    return _simple_spec("delete-sale", "Delete a sale and restock its units.", run_delete_sale, configure)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    return _simple_spec("products", "List products and stock levels.", run_products)


def register_staff_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``staff``."""
    return _simple_spec("staff", "List sales staff with their order counts and revenue.", run_staff)


def register_sales_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sales``."""
    return _simple_spec("sales", "List recorded sales.", run_sales)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    return _simple_spec("dashboard", "Show totals, recent sales and low-stock products.", run_dashboard)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``report``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--days", type=int, default=None, help="Only include the last N days.")
        parser.add_argument("--product-id", type=int, default=None)
        parser.add_argument("--staff-id", type=int, default=None)
        parser.add_argument("--as-of", dest="as_of", type=parse_date, default=None,
                            help="Reference date for --days (default: today).")

    return _simple_spec("report", "Show a filtered sales report with top performers.", run_report, configure)


def register_change_pin_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``change-pin``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--current", default=None, help="Current PIN (prompted when omitted).")
        parser.add_argument("--new", dest="new_pin", default=None, help="New PIN (prompted when omitted).")
        parser.add_argument("--confirm", default=None, help="Repeat the new PIN (prompted when omitted).")

    return _simple_spec("change-pin", "Change the PIN that protects destructive commands.", run_change_pin, configure)


def register_clear_data_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``clear-data``."""

    def configure(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--pin", default=None, help="PIN (prompted when omitted).")

    return _simple_spec("clear-data", "Delete ALL products, sales and staff.", run_clear_data, configure)


def dispatch_command(
    context: RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-product request."""
    return {
        "name": args.name,
        "category": args.category,
        "price": args.price,
        "stock": args.stock,
    }


def translate_add_staff(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-staff request."""
    return {
        "name": args.name,
        "email": args.email,
        "phone": args.phone,
        "address": args.address,
    }


def translate_sale(args: argparse.Namespace, *, today: Optional[date] = None) -> core_logic.SaleCommand:
    """Translate CLI args into a sale command object."""
    return core_logic.SaleCommand(
        product_id=args.product_id,
        staff_id=args.staff_id,
        customer_name=args.customer,
        quantity=args.quantity,
        sale_date=args.sale_date or today or date.today(),
    )


def run_add_product(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow."""
    product = context.store.add_product(**translate_add_product(args))
    print(f"Added product {product.product_id}: {product.name}")
    return 0


def run_update_product(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow."""
    product = context.store.update_product(
        args.product_id,
        name=args.name,
        category=args.category,
        price=args.price,
        stock=args.stock,
    )
    print(f"Updated product {product.product_id}: {format_product(product)}")
    return 0


def run_delete_product(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-product workflow."""
    product = context.store.delete_product(args.product_id)
    print(f"Deleted product {product.product_id}: {product.name}")
    return 0


def run_add_staff(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-staff workflow."""
    staff = context.store.add_sales_staff(**translate_add_staff(args))
    print(f"Added sales staff {staff.staff_id}: {staff.name}")
    return 0


def run_update_staff(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-staff workflow."""
    staff = context.store.update_sales_staff(
        args.staff_id,
        name=args.name,
        email=args.email,
        phone=args.phone,
        address=args.address,
    )
    print(f"Updated sales staff {staff.staff_id}: {staff.name}")
    return 0


def run_delete_staff(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-staff workflow."""
    staff = context.store.delete_sales_staff(args.staff_id)
    print(f"Deleted sales staff {staff.staff_id}: {staff.name}")
    return 0


def run_sale(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow."""
    sale = context.store.record_sale(translate_sale(args))
    print(f"Recorded sale {sale.sale_id}: {format_sale(context, sale)}")
    return 0


def run_delete_sale(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-sale workflow."""
    sale = context.store.delete_sale(args.sale_id)
    print(f"Deleted sale {sale.sale_id}")
    return 0


def run_products(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Print every product."""
    products = context.store.list_products()
    if not products:
        print("No products found")
    for product in products:
        print(f"{product.product_id}  {format_product(product)}")
    return 0


def run_staff(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Print every staff member with their sales totals."""
    snapshot = context.store.snapshot()
    rows = reports.staff_performance(snapshot.sales, snapshot.sales_staff)
    if not rows:
        print("No sales staff found")
    staff_by_id = {staff.staff_id: staff for staff in snapshot.sales_staff}
    for row in rows:
        staff = staff_by_id[row.staff_id]
        print(
            f"{row.staff_id}  {row.name} <{staff.email}> {staff.phone}  "
            f"orders={row.total_orders} revenue={format_money(row.total_revenue)}"
        )
    return 0


def run_sales(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Print every sale."""
    sales = context.store.list_sales()
    if not sales:
        print("No sales found")
    for sale in sales:
        print(f"{sale.sale_id}  {format_sale(context, sale)}")
    return 0


def run_dashboard(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Print the dashboard totals, recent sales and low-stock alerts."""
    settings = context.settings
    snapshot = context.store.snapshot()
    stats = reports.dashboard_stats(snapshot)
    print(f"== {settings.shop_name} ==")
    print(f"Total sales:    {format_money(stats.total_revenue)}")
    print(f"Total orders:   {stats.total_orders}")
    print(f"Products:       {stats.total_products}")
    print(f"Sales staff:    {stats.total_sales_staff}")

    print("\nRecent sales:")
    recent = reports.recent_sales(snapshot.sales, limit=settings.recent_limit)
    if not recent:
        print("  No sales yet")
    for sale in recent:
        print(f"  {format_sale(context, sale)}")

    print("\nLow stock:")
    low_stock = reports.low_stock_products(snapshot.products, threshold=settings.low_stock_threshold)
    if not low_stock:
        print("  No low stock items")
    for product in low_stock:
        print(f"  {product.name}: {product.stock} left")
    return 0


def run_report(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Print a filtered sales report."""
    snapshot = context.store.snapshot()
    limit = context.settings.top_limit
    filtered = reports.filter_sales(
        snapshot.sales,
        today=args.as_of or date.today(),
        since_days=args.days,
        product_id=args.product_id,
        staff_id=args.staff_id,
    )
    summary = reports.summarize(filtered)
    print(f"Total revenue:       {format_money(summary.total_revenue)}")
    print(f"Total orders:        {summary.total_orders}")
    print(f"Average order value: {format_money(summary.average_order_value)}")

    print("\nTop products:")
    for rank, entry in enumerate(reports.top_products_by_sold_quantity(filtered, snapshot.products, limit=limit), start=1):
        print(f"  #{rank} {entry.name}: {entry.value} sold")
    print("\nTop sales staff:")
    for rank, entry in enumerate(reports.top_staff_by_revenue(filtered, snapshot.sales_staff, limit=limit), start=1):
        print(f"  #{rank} {entry.name}: {format_money(entry.value)}")

    print("\nDetails:")
    lines = reports.detailed_report(filtered, snapshot.products, snapshot.sales_staff)
    if not lines:
        print("  No sales found for the selected filters")
    for line in lines:
        print(
            f"  {line.sale_date.isoformat()}  {line.product_name}  {line.staff_name}  "
            f"{line.customer_name}  x{line.quantity}  {format_money(line.total)}"
        )
    return 0


def run_change_pin(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the change-pin workflow."""
    current = args.current if args.current is not None else getpass.getpass("Current PIN: ")
    new_pin = args.new_pin if args.new_pin is not None else getpass.getpass("New PIN: ")
    confirmation = args.confirm if args.confirm is not None else getpass.getpass("Confirm new PIN: ")
    context.access.change(current, new_pin, confirmation=confirmation)
    print("PIN changed successfully")
    return 0


def run_clear_data(context: RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the clear-data workflow behind the PIN check."""
    pin = args.pin if args.pin is not None else getpass.getpass("Enter PIN to clear all data: ")
    context.access.clear_all_data(context.store, pin)
    print("All data cleared")
    return 0


def format_money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def format_product(product: ProductRow) -> str:
    return f"{product.name} [{product.category}] price={format_money(product.price)} stock={product.stock}"


def format_sale(context: RuntimeContext, sale: SaleRow) -> str:
    return (
        f"{sale.sale_date.isoformat()} {context.store.product_name(sale.product_id)} x{sale.quantity} "
        f"by {context.store.staff_name(sale.staff_id)} to {sale.customer_name} = {format_money(sale.total)}"
    )


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    if args.verbose:
        set_console_level(logging.DEBUG)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
