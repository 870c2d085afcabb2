"""Constants shared across the Shop Ledger layers.

The persistence adapter, the ledger store and the command-line front-end all
refer to the same storage keys, sheet names and column layouts, so they live
here rather than in any single layer.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Mapping, Sequence


# Schema version expected in ``config.ini`` before the workbook is touched.
EXPECTED_SCHEMA_VERSION = "1.0.0"

DEFAULT_PIN = "1234"
MIN_PIN_LENGTH = 4

UNKNOWN_NAME = "Unknown"

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_TOP_LIMIT = 3
DEFAULT_RECENT_LIMIT = 5

# Money is kept to whole cents. Workbook cells hold doubles, which only
# round-trip 15 significant digits, so amounts are capped accordingly.
MONEY_QUANTUM = Decimal("0.01")
MAX_MONEY = Decimal("9999999999999.99")


class StoreKey(str, Enum):
    """Logical keys understood by every persistence adapter."""

    PRODUCTS = "products"
    SALES = "sales"
    SALES_STAFF = "sales_staff"
    PIN = "pin"


class SheetName(str, Enum):
    """Worksheet names used by the workbook-backed adapter."""

    PRODUCTS = "Products"
    SALES = "Sales"
    SALES_STAFF = "SalesStaff"
    SETTINGS = "Settings"


COLLECTION_KEYS: tuple[StoreKey, ...] = (
    StoreKey.PRODUCTS,
    StoreKey.SALES,
    StoreKey.SALES_STAFF,
)

SHEET_FOR_KEY: Mapping[StoreKey, SheetName] = {
    StoreKey.PRODUCTS: SheetName.PRODUCTS,
    StoreKey.SALES: SheetName.SALES,
    StoreKey.SALES_STAFF: SheetName.SALES_STAFF,
    StoreKey.PIN: SheetName.SETTINGS,
}

SHEET_COLUMNS: Mapping[SheetName, Sequence[str]] = {
    SheetName.PRODUCTS: ["ProductID", "Name", "Category", "Price", "Stock"],
    SheetName.SALES: [
        "SaleID",
        "ProductID",
        "StaffID",
        "CustomerName",
        "Quantity",
        "Date",
        "Total",
    ],
    SheetName.SALES_STAFF: ["StaffID", "Name", "Email", "Phone", "Address"],
    SheetName.SETTINGS: ["Key", "Value"],
}

PIN_SETTING = "Pin"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_PIN",
    "MIN_PIN_LENGTH",
    "UNKNOWN_NAME",
    "DEFAULT_LOW_STOCK_THRESHOLD",
    "DEFAULT_TOP_LIMIT",
    "DEFAULT_RECENT_LIMIT",
    "MONEY_QUANTUM",
    "MAX_MONEY",
    "StoreKey",
    "SheetName",
    "COLLECTION_KEYS",
    "SHEET_FOR_KEY",
    "SHEET_COLUMNS",
    "PIN_SETTING",
]
