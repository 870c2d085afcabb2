"""Business logic layer for Shop Ledger.

The :class:`LedgerStore` owns the Products, Sales and SalesStaff collections
for one session. It enforces the cross-collection rules (stock never goes
negative, a sale must reference an existing product and staff member, sale
totals are frozen at creation) and writes every collection back through the
persistence adapter after each successful mutation.

References from a sale to its product or staff member are weak: deleting a
product or staff member keeps the historical sales, and readers resolve the
dangling id to ``"Unknown"``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

from . import data_manager, log
from .constants import COLLECTION_KEYS, MAX_MONEY, MONEY_QUANTUM, UNKNOWN_NAME, StoreKey
from .data_manager import ProductRow, SaleRow, SalesStaffRow


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class InvalidReference(BusinessRuleViolation):
    """Raised when a referenced product, staff member, or sale is unknown."""


class InsufficientStock(BusinessRuleViolation):
    """Raised when a sale asks for more units than the product has in stock."""


class PersistenceAdapter(Protocol):
    """Key-value contract shared by :class:`~shop_ledger.data_manager.WorkbookStore`
    and :class:`~shop_ledger.data_manager.MemoryStore`."""

    def load(self, key: StoreKey) -> Optional[data_manager.StoredValue]: ...

    def save(self, key: StoreKey, value: data_manager.StoredValue) -> None: ...

    def remove(self, key: StoreKey) -> None: ...


@dataclass(frozen=True)
class SaleCommand:
    """User intent for recording a sale."""

    product_id: int
    staff_id: int
    customer_name: str
    quantity: int
    sale_date: date


@dataclass(frozen=True)
class LedgerSnapshot:
    """Read-only view of the ledger handed to the report functions."""

    products: tuple[ProductRow, ...]
    sales: tuple[SaleRow, ...]
    sales_staff: tuple[SalesStaffRow, ...]


def _epoch_millis() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class IdentifierSource:
    """Issue strictly increasing integer identifiers.

    Identifiers look like millisecond timestamps, but two requests within the
    same millisecond (or after the clock steps backwards) still receive
    distinct, increasing values because each id is at least one more than the
    previous one.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None, *, floor: int = 0):
        self._clock = clock or _epoch_millis
        self._last = floor

    @property
    def last_issued(self) -> int:
        return self._last

    def observe(self, identifier: int) -> None:
        """Make sure future identifiers are larger than ``identifier``."""

        if identifier > self._last:
            self._last = identifier

    def next_id(self) -> int:
        candidate = max(self._last + 1, int(self._clock()))
        self._last = candidate
        return candidate


Row = TypeVar("Row", ProductRow, SalesStaffRow, SaleRow)


class LedgerStore:
    """In-memory authority for products, sales and sales staff.

    The store loads its collections from ``adapter`` when constructed. Every
    mutating method validates its input completely before touching memory, so
    a rejected call leaves all three collections unchanged. After a mutation
    succeeds the three collections are saved in full.

    Args:
        adapter: Persistence adapter providing ``load``/``save``/``remove``.
        id_source (IdentifierSource | None): Identifier generator. Defaults to
            a clock-backed source seeded above every id already stored.
    """

    def __init__(self, adapter: PersistenceAdapter, *, id_source: Optional[IdentifierSource] = None):
        self.adapter = adapter
        self._products: List[ProductRow] = [
            data_manager.deserialize_product(raw) for raw in adapter.load(StoreKey.PRODUCTS) or []
        ]
        self._sales: List[SaleRow] = [
            data_manager.deserialize_sale(raw) for raw in adapter.load(StoreKey.SALES) or []
        ]
        self._sales_staff: List[SalesStaffRow] = [
            data_manager.deserialize_sales_staff(raw) for raw in adapter.load(StoreKey.SALES_STAFF) or []
        ]
        self.id_source = id_source or IdentifierSource()
        for identifier in self._all_identifiers():
            self.id_source.observe(identifier)
        log.info(
            "Loaded ledger with %d products, %d sales and %d staff members",
            len(self._products),
            len(self._sales),
            len(self._sales_staff),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_products(self) -> List[ProductRow]:
        """Return the products in insertion order."""

        return list(self._products)

    def list_sales(self) -> List[SaleRow]:
        """Return the sales in insertion order."""

        return list(self._sales)

    def list_sales_staff(self) -> List[SalesStaffRow]:
        """Return the sales staff in insertion order."""

        return list(self._sales_staff)

    def find_product(self, product_id: int) -> Optional[ProductRow]:
        return _find(self._products, "product_id", product_id)

    def find_sales_staff(self, staff_id: int) -> Optional[SalesStaffRow]:
        return _find(self._sales_staff, "staff_id", staff_id)

    def find_sale(self, sale_id: int) -> Optional[SaleRow]:
        return _find(self._sales, "sale_id", sale_id)

    def get_product(self, product_id: int) -> ProductRow:
        """Resolve a product by id.

        Raises:
            InvalidReference: If no product has ``product_id``.
        """

        product = self.find_product(product_id)
        if product is None:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise InvalidReference(f"Unknown product id: {product_id}")
        return product

    def get_sales_staff(self, staff_id: int) -> SalesStaffRow:
        """Resolve a staff member by id.

        Raises:
            InvalidReference: If no staff member has ``staff_id``.
        """

        staff = self.find_sales_staff(staff_id)
        if staff is None:
            log.warning("Sales staff lookup failed for id '%s'", staff_id)
            raise InvalidReference(f"Unknown sales staff id: {staff_id}")
        return staff

    def get_sale(self, sale_id: int) -> SaleRow:
        """Resolve a sale by id.

        Raises:
            InvalidReference: If no sale has ``sale_id``.
        """

        sale = self.find_sale(sale_id)
        if sale is None:
            log.warning("Sale lookup failed for id '%s'", sale_id)
            raise InvalidReference(f"Unknown sale id: {sale_id}")
        return sale

    def product_name(self, product_id: int) -> str:
        """Name of the product, or ``"Unknown"`` for a dangling reference."""

        product = self.find_product(product_id)
        return product.name if product is not None else UNKNOWN_NAME

    def staff_name(self, staff_id: int) -> str:
        """Name of the staff member, or ``"Unknown"`` for a dangling reference."""

        staff = self.find_sales_staff(staff_id)
        return staff.name if staff is not None else UNKNOWN_NAME

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            products=tuple(self._products),
            sales=tuple(self._sales),
            sales_staff=tuple(self._sales_staff),
        )

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def add_product(self, name: str, category: str, price: Decimal, stock: int) -> ProductRow:
        """Register a new product and persist the ledger.

        Args:
            name (str): Display name.
            category (str): Free-text category.
            price (Decimal): Unit price, zero or positive.
            stock (int): Units on hand, zero or positive.

        Returns:
            ProductRow: The stored product including its fresh id. The price
            is rounded to whole cents.

        Raises:
            ValueError: If ``price`` or ``stock`` is negative, or ``price``
                exceeds ``MAX_MONEY``.
        """

        require_nonnegative_money(price)
        require_nonnegative_stock(stock)

        product = ProductRow(
            product_id=self.id_source.next_id(),
            name=name,
            category=category,
            price=normalize_money(price),
            stock=stock,
        )
        self._products.append(product)
        log.info("Added product '%s' (%s) with stock %s", product.product_id, name, stock)
        self._persist()
        return product

    def update_product(
        self,
        product_id: int,
        *,
        name: Optional[str] = None,
        category: Optional[str] = None,
        price: Optional[Decimal] = None,
        stock: Optional[int] = None,
    ) -> ProductRow:
        """Edit selected product fields; ``None`` leaves a field untouched.

        Totals of sales already recorded are not recomputed when the price
        changes.

        Raises:
            InvalidReference: If the product is unknown.
            ValueError: If the new price or stock is negative, or the price
                exceeds ``MAX_MONEY``.
        """

        product = self.get_product(product_id)
        if price is not None:
            require_nonnegative_money(price)
            price = normalize_money(price)
        if stock is not None:
            require_nonnegative_stock(stock)

        changes = {
            field_name: value
            for field_name, value in (("name", name), ("category", category), ("price", price), ("stock", stock))
            if value is not None
        }
        updated = replace(product, **changes)
        self._replace(self._products, product, updated)
        log.info("Updated product '%s': %s", product_id, ", ".join(sorted(changes)) or "no changes")
        self._persist()
        return updated

    def delete_product(self, product_id: int) -> ProductRow:
        """Remove a product. Sales referencing it are kept.

        Raises:
            InvalidReference: If the product is unknown.
        """

        product = self.get_product(product_id)
        self._products.remove(product)
        log.info("Deleted product '%s'", product_id)
        self._persist()
        return product

    # ------------------------------------------------------------------
    # Sales staff
    # ------------------------------------------------------------------

    def add_sales_staff(self, name: str, email: str, phone: str, address: str) -> SalesStaffRow:
        """Register a new staff member and persist the ledger.

        No uniqueness is enforced on names or emails.
        """

        staff = SalesStaffRow(
            staff_id=self.id_source.next_id(),
            name=name,
            email=email,
            phone=phone,
            address=address,
        )
        self._sales_staff.append(staff)
        log.info("Added sales staff '%s' (%s)", staff.staff_id, name)
        self._persist()
        return staff

    def update_sales_staff(
        self,
        staff_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> SalesStaffRow:
        """Edit selected staff fields; ``None`` leaves a field untouched."""

        staff = self.get_sales_staff(staff_id)
        changes = {
            field_name: value
            for field_name, value in (("name", name), ("email", email), ("phone", phone), ("address", address))
            if value is not None
        }
        updated = replace(staff, **changes)
        self._replace(self._sales_staff, staff, updated)
        log.info("Updated sales staff '%s': %s", staff_id, ", ".join(sorted(changes)) or "no changes")
        self._persist()
        return updated

    def delete_sales_staff(self, staff_id: int) -> SalesStaffRow:
        """Remove a staff member. Sales referencing them are kept.

        Raises:
            InvalidReference: If the staff member is unknown.
        """

        staff = self.get_sales_staff(staff_id)
        self._sales_staff.remove(staff)
        log.info("Deleted sales staff '%s'", staff_id)
        self._persist()
        return staff

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def record_sale(self, command: SaleCommand) -> SaleRow:
        """Validate and record a sale, taking the units out of stock.

        The sale total is ``price * quantity`` using the product's price at
        this moment; later price edits never change it.

        Args:
            command (SaleCommand): Structured intent describing the sale.

        Returns:
            SaleRow: The stored sale.

        Raises:
            ValueError: If the quantity is not positive or the total exceeds
                ``MAX_MONEY``.
            InvalidReference: If the product or staff member is unknown.
            InsufficientStock: If the quantity exceeds the product's stock.
        """

        require_positive_quantity(command.quantity)
        product = self.get_product(command.product_id)
        self.get_sales_staff(command.staff_id)
        if command.quantity > product.stock:
            log.warning(
                "Rejected sale of %s units of product '%s': only %s in stock",
                command.quantity,
                command.product_id,
                product.stock,
            )
            raise InsufficientStock(
                f"Insufficient stock for product {command.product_id}: "
                f"requested {command.quantity}, available {product.stock}"
            )

        total = product.price * command.quantity
        require_nonnegative_money(total)

        sale = SaleRow(
            sale_id=self.id_source.next_id(),
            product_id=command.product_id,
            staff_id=command.staff_id,
            customer_name=command.customer_name,
            quantity=command.quantity,
            sale_date=command.sale_date,
            total=normalize_money(total),
        )
        self._replace(self._products, product, replace(product, stock=product.stock - command.quantity))
        self._sales.append(sale)
        log.info(
            "Recorded sale '%s' for product '%s' (quantity=%s, total=%s)",
            sale.sale_id,
            sale.product_id,
            sale.quantity,
            sale.total,
        )
        self._persist()
        return sale

    def delete_sale(self, sale_id: int) -> SaleRow:
        """Remove a sale and put its units back in stock.

        When the product has been deleted in the meantime the restock is
        skipped and the sale is still removed.

        Raises:
            InvalidReference: If the sale is unknown.
        """

        sale = self.get_sale(sale_id)
        product = self.find_product(sale.product_id)
        if product is not None:
            self._replace(self._products, product, replace(product, stock=product.stock + sale.quantity))
        else:
            log.info("Product '%s' no longer exists; skipping restock for sale '%s'", sale.product_id, sale_id)
        self._sales.remove(sale)
        log.info("Deleted sale '%s' (restored %s units)", sale_id, sale.quantity if product else 0)
        self._persist()
        return sale

    # ------------------------------------------------------------------
    # Session-wide operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Empty every collection and drop the persisted entries.

        Callers go through :meth:`shop_ledger.access_control.AccessControl.clear_all_data`
        so the operation stays behind the PIN check.
        """

        self._products.clear()
        self._sales.clear()
        self._sales_staff.clear()
        for key in COLLECTION_KEYS:
            self.adapter.remove(key)
        log.info("Cleared all ledger data")

    def _persist(self) -> None:
        self.adapter.save(StoreKey.PRODUCTS, [data_manager.serialize_product(p) for p in self._products])
        self.adapter.save(StoreKey.SALES, [data_manager.serialize_sale(s) for s in self._sales])
        self.adapter.save(
            StoreKey.SALES_STAFF,
            [data_manager.serialize_sales_staff(s) for s in self._sales_staff],
        )
        log.debug("Persisted ledger collections")

    def _all_identifiers(self) -> List[int]:
        return (
            [p.product_id for p in self._products]
            + [s.sale_id for s in self._sales]
            + [s.staff_id for s in self._sales_staff]
        )

    @staticmethod
    def _replace(collection: List[Row], old: Row, new: Row) -> None:
        collection[collection.index(old)] = new


def _find(collection: Sequence[Row], attribute: str, identifier: int) -> Optional[Row]:
    for record in collection:
        if getattr(record, attribute) == identifier:
            return record
    return None


def require_positive_quantity(quantity: int) -> None:
    """Validate that a sale quantity is strictly positive.

    Raises:
        ValueError: If ``quantity`` is zero or negative.
    """
    if quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be greater than zero")


def require_nonnegative_stock(stock: int) -> None:
    """Validate that a stock level is zero or positive.

    Raises:
        ValueError: If ``stock`` is negative.
    """
    if stock < 0:
        log.error("Stock validation failed: %s", stock)
        raise ValueError("Stock must be zero or positive")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative and storable.

    Raises:
        ValueError: If ``amount`` is less than zero or greater than
            ``MAX_MONEY``.
    """
    if amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")
    if amount > MAX_MONEY:
        log.error("Monetary value validation failed: %s exceeds %s", amount, MAX_MONEY)
        raise ValueError(f"Amount must not exceed {MAX_MONEY}")


def normalize_money(amount: Decimal) -> Decimal:
    """Round ``amount`` half-up to whole cents."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
