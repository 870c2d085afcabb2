"""Report engine for Shop Ledger.

Every function here is pure: it reads the records it is given and returns new
values without touching the ledger. The current date is always passed in by
the caller, which keeps date filtering deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from . import log
from .constants import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    DEFAULT_RECENT_LIMIT,
    DEFAULT_TOP_LIMIT,
    UNKNOWN_NAME,
)
from .core_logic import LedgerSnapshot
from .data_manager import ProductRow, SaleRow, SalesStaffRow


@dataclass(frozen=True)
class SalesSummary:
    """Revenue, order count and average order value for a set of sales."""

    total_revenue: Decimal
    total_orders: int
    average_order_value: Decimal


@dataclass(frozen=True)
class RankedEntry:
    """One line of a leaderboard: who or what, and the summed value.

    ``value`` is a unit count (``int``) for product rankings and a revenue
    (``Decimal``) for staff rankings.
    """

    entity_id: int
    name: str
    value: Union[int, Decimal]


@dataclass(frozen=True)
class StaffPerformance:
    staff_id: int
    name: str
    total_orders: int
    total_revenue: Decimal


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: Decimal
    total_orders: int
    total_products: int
    total_sales_staff: int


@dataclass(frozen=True)
class ReportLine:
    """A sale with its product and staff references resolved to names."""

    sale_id: int
    sale_date: date
    product_name: str
    staff_name: str
    customer_name: str
    quantity: int
    total: Decimal


def filter_sales(
    sales: Iterable[SaleRow],
    *,
    today: date,
    since_days: Optional[int] = None,
    product_id: Optional[int] = None,
    staff_id: Optional[int] = None,
) -> List[SaleRow]:
    """Select the sales matching every supplied filter.

    Args:
        sales (Iterable[SaleRow]): Sales to filter, in display order.
        today (date): Reference date for the ``since_days`` window.
        since_days (int | None): When positive, keep sales dated on or after
            ``today - since_days``. ``None``, zero or a negative value
            disables the filter.
        product_id (int | None): Keep only sales of this product.
        staff_id (int | None): Keep only sales made by this staff member.

    Returns:
        list[SaleRow]: Matching sales in their original order.
    """

    filtered = list(sales)
    if since_days and since_days > 0:
        cutoff = today - timedelta(days=since_days)
        filtered = [sale for sale in filtered if sale.sale_date >= cutoff]
    if product_id:
        filtered = [sale for sale in filtered if sale.product_id == product_id]
    if staff_id:
        filtered = [sale for sale in filtered if sale.staff_id == staff_id]
    log.debug(
        "Filtered sales to %d entries (since_days=%s, product_id=%s, staff_id=%s)",
        len(filtered),
        since_days,
        product_id,
        staff_id,
    )
    return filtered


def summarize(sales: Sequence[SaleRow]) -> SalesSummary:
    """Aggregate revenue and order counts.

    The average order value is zero when there are no sales.
    """

    total_revenue = sum((sale.total for sale in sales), Decimal("0"))
    total_orders = len(sales)
    average = total_revenue / total_orders if total_orders else Decimal("0")
    return SalesSummary(
        total_revenue=total_revenue,
        total_orders=total_orders,
        average_order_value=average,
    )


def top_products_by_sold_quantity(
    sales: Iterable[SaleRow],
    products: Iterable[ProductRow],
    *,
    limit: int = DEFAULT_TOP_LIMIT,
) -> List[RankedEntry]:
    """Rank products by the number of units sold.

    Quantities are summed per product id. Ties keep the order in which each
    product first appears in ``sales``. Products that no longer exist are
    listed as ``"Unknown"``.
    """

    totals: Dict[int, int] = {}
    for sale in sales:
        totals[sale.product_id] = totals.get(sale.product_id, 0) + sale.quantity
    names = {product.product_id: product.name for product in products}
    return _rank(totals, names, limit)


def top_staff_by_revenue(
    sales: Iterable[SaleRow],
    sales_staff: Iterable[SalesStaffRow],
    *,
    limit: int = DEFAULT_TOP_LIMIT,
) -> List[RankedEntry]:
    """Rank staff members by the revenue of their sales.

    Same grouping and tie rules as :func:`top_products_by_sold_quantity`.
    """

    totals: Dict[int, Decimal] = {}
    for sale in sales:
        totals[sale.staff_id] = totals.get(sale.staff_id, Decimal("0")) + sale.total
    names = {staff.staff_id: staff.name for staff in sales_staff}
    return _rank(totals, names, limit)


def _rank(totals: Mapping[int, Union[int, Decimal]], names: Dict[int, str], limit: int) -> List[RankedEntry]:
    # sorted() is stable, also with reverse=True
    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        RankedEntry(entity_id=entity_id, name=names.get(entity_id, UNKNOWN_NAME), value=value)
        for entity_id, value in ordered[: max(limit, 0)]
    ]


def dashboard_stats(snapshot: LedgerSnapshot) -> DashboardStats:
    """Headline numbers for the whole ledger."""

    summary = summarize(snapshot.sales)
    return DashboardStats(
        total_revenue=summary.total_revenue,
        total_orders=summary.total_orders,
        total_products=len(snapshot.products),
        total_sales_staff=len(snapshot.sales_staff),
    )


def recent_sales(sales: Sequence[SaleRow], *, limit: int = DEFAULT_RECENT_LIMIT) -> List[SaleRow]:
    """Return the last ``limit`` recorded sales, newest first."""

    if limit <= 0:
        return []
    return list(reversed(sales[-limit:]))


def low_stock_products(
    products: Iterable[ProductRow],
    *,
    threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> List[ProductRow]:
    """Products that are running low but not yet sold out."""

    return [product for product in products if 0 < product.stock <= threshold]


def staff_performance(
    sales: Iterable[SaleRow],
    sales_staff: Iterable[SalesStaffRow],
) -> List[StaffPerformance]:
    """Order count and revenue for every staff member, in staff order.

    Staff without sales are included with zero totals. Sales whose staff
    member was deleted are not attributed to anyone.
    """

    counts: Dict[int, int] = {}
    revenue: Dict[int, Decimal] = {}
    for sale in sales:
        counts[sale.staff_id] = counts.get(sale.staff_id, 0) + 1
        revenue[sale.staff_id] = revenue.get(sale.staff_id, Decimal("0")) + sale.total
    return [
        StaffPerformance(
            staff_id=staff.staff_id,
            name=staff.name,
            total_orders=counts.get(staff.staff_id, 0),
            total_revenue=revenue.get(staff.staff_id, Decimal("0")),
        )
        for staff in sales_staff
    ]


def detailed_report(
    sales: Iterable[SaleRow],
    products: Iterable[ProductRow],
    sales_staff: Iterable[SalesStaffRow],
) -> List[ReportLine]:
    """Resolve each sale's product and staff ids to display names."""

    product_names = {product.product_id: product.name for product in products}
    staff_names = {staff.staff_id: staff.name for staff in sales_staff}
    return [
        ReportLine(
            sale_id=sale.sale_id,
            sale_date=sale.sale_date,
            product_name=product_names.get(sale.product_id, UNKNOWN_NAME),
            staff_name=staff_names.get(sale.staff_id, UNKNOWN_NAME),
            customer_name=sale.customer_name,
            quantity=sale.quantity,
            total=sale.total,
        )
        for sale in sales
    ]
