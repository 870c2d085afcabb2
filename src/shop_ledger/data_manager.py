"""Data access layer for Shop Ledger.

This module owns everything that touches storage. Business rules belong in
:mod:`shop_ledger.core_logic`.

The public API is built around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Record shapes: the frozen row dataclasses and their conversion to and from
   the flat dictionaries exchanged with a persistence adapter.
3. Persistence adapters: :class:`WorkbookStore` keeps each logical key on its
   own worksheet of an ``.xlsx`` workbook, :class:`MemoryStore` keeps them in
   a dictionary for throwaway sessions.
"""


from __future__ import annotations

import configparser
import copy
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    DEFAULT_RECENT_LIMIT,
    DEFAULT_TOP_LIMIT,
    PIN_SETTING,
    SHEET_COLUMNS,
    SHEET_FOR_KEY,
    SheetName,
    StoreKey,
)


CONFIG_FILE_NAME = "config.ini"

Record = Dict[str, Any]
StoredValue = Union[List[Record], str]


class PersistenceError(RuntimeError):
    """Raised when a persistence adapter cannot write to its backing medium."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    top_limit: int = DEFAULT_TOP_LIMIT
    recent_limit: int = DEFAULT_RECENT_LIMIT


@dataclass(frozen=True)
class ProductRow:
    """A product and its current stock level."""

    product_id: int
    name: str
    category: str
    price: Decimal
    stock: int


@dataclass(frozen=True)
class SalesStaffRow:
    """A member of the sales staff."""

    staff_id: int
    name: str
    email: str
    phone: str
    address: str


@dataclass(frozen=True)
class SaleRow:
    """A recorded sale; ``total`` is frozen at the moment of sale."""

    sale_id: int
    product_id: int
    staff_id: int
    customer_name: str
    quantity: int
    sale_date: date
    total: Decimal


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls the application.

    If the caller provides ``explicit_path`` it is returned immediately
    without verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match wins.

    Args:
        explicit_path (Path | None): Optional path to use instead of the
            upward search.

    Returns:
        Path: The caller's path or the discovered configuration file.

    Raises:
        FileNotFoundError: If no ``CONFIG_FILE_NAME`` exists in the current
            directory or any of its parents.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser``.

    The path is expanded (``~``) and resolved before parsing. Validation of
    individual entries happens in :func:`parse_settings`.

    Args:
        config_path (Path): Path to the configuration file.

    Returns:
        configparser.ConfigParser: Parser holding the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. The ``[Reports]`` section is optional
    and falls back to the package defaults. Relative ``DataFile`` entries are
    anchored to ``base_path`` (or the current working directory) and resolved
    to an absolute path.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor a relative
            ``DataFile``.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If a ``[Reports]`` option is not an integer.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    low_stock_threshold = parser.getint(
        "Reports", "LowStockThreshold", fallback=DEFAULT_LOW_STOCK_THRESHOLD)
    top_limit = parser.getint("Reports", "TopLimit", fallback=DEFAULT_TOP_LIMIT)
    recent_limit = parser.getint(
        "Reports", "RecentLimit", fallback=DEFAULT_RECENT_LIMIT)

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        low_stock_threshold=low_stock_threshold,
        top_limit=top_limit,
        recent_limit=recent_limit,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master workbook.

    Args:
        data_file (Path): Filesystem path to the ``.xlsx`` file.

    Returns:
        Workbook: ``openpyxl`` workbook backed by the file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook at ``destination``, creating parent folders."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def write_sheet(workbook: Workbook, sheet: SheetName, rows: Sequence[Sequence[object]]) -> None:
    """Replace ``sheet`` with a bold header row followed by ``rows``.

    Values are always stored as data; text starting with ``=`` is written as
    a plain string so Excel never evaluates it.

    The sheet keeps its position in the workbook when it already exists so
    that repeated saves do not reorder the tabs.
    """

    index = None
    if sheet.value in workbook.sheetnames:
        index = workbook.sheetnames.index(sheet.value)
        workbook.remove(workbook[sheet.value])

    worksheet = workbook.create_sheet(title=sheet.value, index=index)
    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(SHEET_COLUMNS[sheet], start=1):
        cell = worksheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font
    for row in rows:
        worksheet.append(list(row))
        for cell in worksheet[worksheet.max_row]:
            # text such as "=HYPERLINK(...)" must stay text, not become a formula
            if cell.data_type == "f":
                cell.data_type = "s"


def read_sheet(workbook: Workbook, sheet: SheetName) -> Optional[List[Record]]:
    """Return the rows of ``sheet`` as header-keyed dictionaries.

    Fully empty rows are skipped. ``None`` signals that the sheet is absent,
    which callers treat the same way as a key that was never saved.
    """

    if sheet.value not in workbook.sheetnames:
        return None

    worksheet = workbook[sheet.value]
    header = [cell.value for cell in worksheet[1]]
    records: List[Record] = []
    for raw in worksheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            records.append(dict(zip(header, raw)))
    return records


class WorkbookStore:
    """Persistence adapter keeping each logical key on its own worksheet.

    Collections are written in full on every :meth:`save` (the sheet is
    rebuilt rather than appended to) and the workbook is saved to disk
    immediately, so the file always reflects the last successful write.
    """

    def __init__(self, workbook: Workbook, destination: Path):
        self.workbook = workbook
        self.destination = Path(destination)

    @classmethod
    def open(cls, data_file: Path) -> "WorkbookStore":
        """Open an existing master workbook; see :func:`open_workbook`."""

        return cls(open_workbook(data_file), data_file)

    def load(self, key: StoreKey) -> Optional[StoredValue]:
        """Return the value stored under ``key`` or ``None`` when absent."""

        key = StoreKey(key)
        sheet = SHEET_FOR_KEY[key]
        if key is StoreKey.PIN:
            return self._load_setting(PIN_SETTING)
        return read_sheet(self.workbook, sheet)

    def save(self, key: StoreKey, value: StoredValue) -> None:
        """Overwrite the value stored under ``key`` and write the file.

        Raises:
            PersistenceError: If the workbook cannot be written to disk. The
                in-memory workbook still holds the new value.
        """

        key = StoreKey(key)
        sheet = SHEET_FOR_KEY[key]
        if key is StoreKey.PIN:
            self._store_setting(PIN_SETTING, str(value))
        else:
            columns = SHEET_COLUMNS[sheet]
            rows = [[record.get(column) for column in columns] for record in value]
            write_sheet(self.workbook, sheet, rows)
        self._flush()

    def remove(self, key: StoreKey) -> None:
        """Drop the value stored under ``key``; missing keys are ignored."""

        key = StoreKey(key)
        sheet = SHEET_FOR_KEY[key]
        if key is StoreKey.PIN:
            settings = self._settings()
            settings.pop(PIN_SETTING, None)
            write_sheet(self.workbook, SheetName.SETTINGS, list(settings.items()))
        elif sheet.value in self.workbook.sheetnames:
            if len(self.workbook.sheetnames) == 1:
                # openpyxl cannot save a workbook without worksheets
                write_sheet(self.workbook, sheet, [])
            else:
                self.workbook.remove(self.workbook[sheet.value])
        self._flush()

    def _settings(self) -> Dict[str, Any]:
        records = read_sheet(self.workbook, SheetName.SETTINGS) or []
        return {str(record["Key"]): record["Value"] for record in records if record.get("Key") is not None}

    def _load_setting(self, name: str) -> Optional[str]:
        value = self._settings().get(name)
        return None if value is None else str(value)

    def _store_setting(self, name: str, value: str) -> None:
        settings = self._settings()
        settings[name] = value
        write_sheet(self.workbook, SheetName.SETTINGS, list(settings.items()))

    def _flush(self) -> None:
        try:
            save_workbook(self.workbook, self.destination)
        except OSError as exc:
            log.error("Unable to write workbook '%s': %s", self.destination, exc)
            raise PersistenceError(f"Unable to write workbook {self.destination}: {exc}") from exc


class MemoryStore:
    """Dictionary-backed persistence adapter.

    Values are deep-copied on the way in and out so callers can never alias
    the stored state.
    """

    def __init__(self, initial: Optional[Mapping[StoreKey, StoredValue]] = None):
        self._data: Dict[StoreKey, StoredValue] = {}
        for key, value in (initial or {}).items():
            self._data[StoreKey(key)] = copy.deepcopy(value)

    def load(self, key: StoreKey) -> Optional[StoredValue]:
        return copy.deepcopy(self._data.get(StoreKey(key)))

    def save(self, key: StoreKey, value: StoredValue) -> None:
        self._data[StoreKey(key)] = copy.deepcopy(value)

    def remove(self, key: StoreKey) -> None:
        self._data.pop(StoreKey(key), None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


def serialize_product(record: ProductRow) -> Record:
    """Convert a product into the flat record stored under ``products``.

    Args:
        record (ProductRow): Product to transform.

    Returns:
        dict[str, object]: Record keyed by the ``Products`` column names, with
        the price kept as a :class:`~decimal.Decimal` number.
    """

    return {
        "ProductID": record.product_id,
        "Name": record.name,
        "Category": record.category,
        "Price": record.price,
        "Stock": record.stock,
    }


def serialize_sales_staff(record: SalesStaffRow) -> Record:
    """Convert a staff member into the flat record stored under ``sales_staff``."""

    return {
        "StaffID": record.staff_id,
        "Name": record.name,
        "Email": record.email,
        "Phone": record.phone,
        "Address": record.address,
    }


def serialize_sale(record: SaleRow) -> Record:
    """Convert a sale into the flat record stored under ``sales``.

    The sale date is written as an ISO ``YYYY-MM-DD`` string and the total
    stays a decimal number.
    """

    return {
        "SaleID": record.sale_id,
        "ProductID": record.product_id,
        "StaffID": record.staff_id,
        "CustomerName": record.customer_name,
        "Quantity": record.quantity,
        "Date": record.sale_date.isoformat(),
        "Total": record.total,
    }


def deserialize_product(raw: Mapping[str, Any]) -> ProductRow:
    """Convert a stored record into a :class:`ProductRow`.

    Spreadsheet cells come back as ``int`` or ``float`` depending on how the
    value was typed, so numbers are normalised here: prices become
    :class:`~decimal.Decimal` via ``str`` to avoid binary float artefacts and
    identifiers and stock levels become ``int``.
    """

    return ProductRow(
        product_id=int(raw["ProductID"]),
        name=_text(raw.get("Name")),
        category=_text(raw.get("Category")),
        price=_decimal(raw.get("Price")),
        stock=int(raw.get("Stock") or 0),
    )


def deserialize_sales_staff(raw: Mapping[str, Any]) -> SalesStaffRow:
    """Convert a stored record into a :class:`SalesStaffRow`."""

    return SalesStaffRow(
        staff_id=int(raw["StaffID"]),
        name=_text(raw.get("Name")),
        email=_text(raw.get("Email")),
        phone=_text(raw.get("Phone")),
        address=_text(raw.get("Address")),
    )


def deserialize_sale(raw: Mapping[str, Any]) -> SaleRow:
    """Convert a stored record into a :class:`SaleRow`.

    Dates are accepted as ISO strings or as ``date``/``datetime`` cells, which
    is what a sheet edited by hand in a spreadsheet program may contain.
    """

    return SaleRow(
        sale_id=int(raw["SaleID"]),
        product_id=int(raw["ProductID"]),
        staff_id=int(raw["StaffID"]),
        customer_name=_text(raw.get("CustomerName")),
        quantity=int(raw.get("Quantity") or 0),
        sale_date=_date(raw["Date"]),
        total=_decimal(raw.get("Total")),
    )


def _text(value: object) -> str:
    return "" if value is None else str(value)


def _decimal(value: object) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0.00")


def _date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
