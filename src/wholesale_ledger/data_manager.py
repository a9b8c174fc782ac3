"""Data access layer for the wholesale ledger.

This module provides low-level helpers that read from and write to the
ledger workbook. Business logic belongs elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and atomically persisting the
   Excel file.
3. Sheet operations: loading structured records and appending, updating or
   deleting individual rows, with the column constraints (non-negative
   stock, unique serials, one journal per invoice) enforced at write time.
4. Transactions: :class:`WorkbookStore` serializes access to the shared
   workbook and turns a block of writes into an all-or-nothing unit.
"""


from __future__ import annotations

import configparser
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, TypeVar

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import DEFAULT_SERIAL_RETRY_LIMIT, MONEY_QUANTUM, SHEET_COLUMNS, SheetName


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
PRINCIPALS_SHEET = SheetName.PRINCIPALS.value
INVOICES_SHEET = SheetName.INVOICES.value
INVOICE_ITEMS_SHEET = SheetName.INVOICE_ITEMS.value
JOURNALS_SHEET = SheetName.JOURNALS.value
JOURNAL_ITEMS_SHEET = SheetName.JOURNAL_ITEMS.value

RowT = TypeVar("RowT")


class StoreError(Exception):
    """Raised when the workbook store cannot complete a read or write."""


class ConstraintViolation(StoreError):
    """Raised when a write would break a column constraint."""


class StockConstraintViolation(ConstraintViolation):
    """Raised when a write would drive a product's stock below zero."""

    def __init__(self, product_id: str, stock_qty: int) -> None:
        super().__init__(f"StockQty for product {product_id} would become {stock_qty}")
        self.product_id = product_id
        self.stock_qty = stock_qty


class UniqueConstraintViolation(ConstraintViolation):
    """Raised when a write would duplicate a unique column value."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    business_name: str
    schema_version: str
    default_principal_id: str
    serial_retry_limit: int = DEFAULT_SERIAL_RETRY_LIMIT


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    product_name: str
    capacity: str
    unit_price: Decimal
    stock_qty: int
    properties: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    customer_name: str
    opening_debt: Decimal
    total_debt: Decimal


@dataclass(frozen=True)
class PrincipalRow:
    """In-memory view of a row from the ``Principals`` sheet."""

    principal_id: str
    principal_name: str
    email: Optional[str]


@dataclass(frozen=True)
class InvoiceRow:
    """In-memory view of a row from the ``Invoices`` sheet."""

    invoice_id: str
    serial: str
    date_iso: str
    customer_id: str
    principal_id: str
    total: Decimal
    collection: Decimal
    balance: Decimal


@dataclass(frozen=True)
class InvoiceItemRow:
    """In-memory view of a row from the ``InvoiceItems`` sheet."""

    invoice_item_id: str
    invoice_id: str
    line_no: int
    product_id: str
    capacity: str
    price: Decimal
    quantity: int
    total: Decimal


@dataclass(frozen=True)
class JournalRow:
    """In-memory view of a row from the ``Journals`` sheet."""

    journal_id: str
    invoice_id: Optional[str]
    date_iso: str
    customer_id: str
    principal_id: str
    total: Decimal
    collection: Decimal
    balance: Decimal


@dataclass(frozen=True)
class JournalItemRow:
    """In-memory view of a row from the ``JournalItems`` sheet."""

    journal_item_id: str
    journal_id: str
    line_no: int
    product_id: str
    product_name: str
    capacity: str
    price: Decimal
    quantity: int
    total: Decimal


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the
    current working directory toward the filesystem root looking for a file
    named ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
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
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data. Required entries are validated later by
            :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are expanded against ``base_path`` when
    provided, or against the current working directory as a fallback. The
    ``[Invoicing]`` section is optional; ``SerialRetryLimit`` falls back to
    :data:`DEFAULT_SERIAL_RETRY_LIMIT`.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor relative data file
            paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing.
        ValueError: If ``SerialRetryLimit`` is not a non-negative integer.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        business_name = parser.get("System", "BusinessName")
        schema_version = parser.get("System", "SchemaVersion")
        default_principal = parser.get("Defaults", "DefaultPrincipal")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    retry_limit = parser.getint(
        "Invoicing", "SerialRetryLimit", fallback=DEFAULT_SERIAL_RETRY_LIMIT)
    if retry_limit < 0:
        raise ValueError("SerialRetryLimit must be zero or positive")

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        business_name=business_name,
        schema_version=schema_version,
        default_principal_id=default_principal,
        serial_retry_limit=retry_limit,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the ledger workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the workbook.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to ``destination`` atomically.

    The workbook is serialized into a temporary file next to the destination
    and then moved over it with :func:`os.replace`, so readers never observe a
    half-written file. Parent directories are created on demand.

    Args:
        workbook (Workbook): Workbook instance to persist.
        destination (Path): Filesystem path that should receive the serialized
            workbook.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.stem}-", suffix=dest.suffix)
    os.close(fd)
    try:
        workbook.save(tmp_name)
        os.replace(tmp_name, dest)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


class WorkbookStore:
    """Shared, lock-guarded handle on the ledger workbook.

    Every read and every transaction holds the store lock for its whole
    duration, so a transaction never observes another transaction's
    uncommitted rows and two transactions never interleave. Committing
    saves the workbook atomically; any exception raised inside a
    transaction discards the in-memory edits by reloading the last committed
    file before the exception propagates.
    """

    def __init__(self, data_file: Path, workbook: Optional[Workbook] = None) -> None:
        self.data_file = Path(data_file).expanduser().resolve()
        self.workbook = workbook if workbook is not None else open_workbook(self.data_file)
        self._lock = threading.RLock()

    @contextmanager
    def read(self) -> Iterator[Workbook]:
        """Yield the committed workbook for read-only access."""
        with self._lock:
            yield self.workbook

    @contextmanager
    def transaction(self) -> Iterator[Workbook]:
        """Yield the workbook for writing and commit or roll back on exit.

        Raises:
            StoreError: If the workbook cannot be saved on commit.
        """
        with self._lock:
            try:
                yield self.workbook
                try:
                    save_workbook(self.workbook, self.data_file)
                except OSError as exc:
                    raise StoreError(f"Unable to persist workbook '{self.data_file}': {exc}") from exc
            except Exception:
                log.error("Rolling back transaction on '%s'", self.data_file)
                self.workbook = refresh_workbook(self.data_file)
                raise
        log.debug("Committed transaction on '%s'", self.data_file)


def _iter_sheet(workbook: Workbook, sheet_name: str, deserializer: Callable[[Sequence[object]], RowT]) -> Iterator[RowT]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield deserializer(raw)


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet."""

    return _iter_sheet(workbook, PRODUCTS_SHEET, deserialize_product)


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over customer records stored on the ``Customers`` worksheet."""

    return _iter_sheet(workbook, CUSTOMERS_SHEET, deserialize_customer)


def iter_principals(workbook: Workbook) -> Iterable[PrincipalRow]:
    """Iterate over principal records stored on the ``Principals`` worksheet."""

    return _iter_sheet(workbook, PRINCIPALS_SHEET, deserialize_principal)


def iter_invoices(workbook: Workbook) -> Iterable[InvoiceRow]:
    """Iterate over invoice headers in insertion order."""

    return _iter_sheet(workbook, INVOICES_SHEET, deserialize_invoice)


def iter_invoice_items(workbook: Workbook) -> Iterable[InvoiceItemRow]:
    """Iterate over invoice lines in insertion order."""

    return _iter_sheet(workbook, INVOICE_ITEMS_SHEET, deserialize_invoice_item)


def iter_journals(workbook: Workbook) -> Iterable[JournalRow]:
    """Iterate over journal headers in insertion order."""

    return _iter_sheet(workbook, JOURNALS_SHEET, deserialize_journal)


def iter_journal_items(workbook: Workbook) -> Iterable[JournalItemRow]:
    """Iterate over journal lines in insertion order."""

    return _iter_sheet(workbook, JOURNAL_ITEMS_SHEET, deserialize_journal_item)


def find_product(workbook: Workbook, product_id: str) -> Optional[ProductRow]:
    return _find(iter_products(workbook), lambda row: row.product_id == product_id)


def find_customer(workbook: Workbook, customer_id: str) -> Optional[CustomerRow]:
    return _find(iter_customers(workbook), lambda row: row.customer_id == customer_id)


def find_principal(workbook: Workbook, principal_id: str) -> Optional[PrincipalRow]:
    return _find(iter_principals(workbook), lambda row: row.principal_id == principal_id)


def find_invoice(workbook: Workbook, invoice_id: str) -> Optional[InvoiceRow]:
    return _find(iter_invoices(workbook), lambda row: row.invoice_id == invoice_id)


def find_journal(workbook: Workbook, journal_id: str) -> Optional[JournalRow]:
    return _find(iter_journals(workbook), lambda row: row.journal_id == journal_id)


def find_journal_by_invoice(workbook: Workbook, invoice_id: str) -> Optional[JournalRow]:
    return _find(iter_journals(workbook), lambda row: row.invoice_id == invoice_id)


def _find(rows: Iterable[RowT], predicate: Callable[[RowT], bool]) -> Optional[RowT]:
    for row in rows:
        if predicate(row):
            return row
    return None


def serial_exists(workbook: Workbook, serial: str) -> bool:
    """Return ``True`` when an invoice already uses ``serial``."""

    return locate_row(workbook, INVOICES_SHEET, "Serial", serial) is not None


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product record, enforcing unique ids and non-negative stock.

    Raises:
        StockConstraintViolation: If ``record.stock_qty`` is negative.
        UniqueConstraintViolation: If the product id is already present.
    """

    if record.stock_qty < 0:
        raise StockConstraintViolation(record.product_id, record.stock_qty)
    _require_unique(workbook, PRODUCTS_SHEET, "ProductID", record.product_id)
    workbook[PRODUCTS_SHEET].append(serialize_product(record))


def append_customer(workbook: Workbook, record: CustomerRow) -> None:
    _require_unique(workbook, CUSTOMERS_SHEET, "CustomerID", record.customer_id)
    workbook[CUSTOMERS_SHEET].append(serialize_customer(record))


def append_principal(workbook: Workbook, record: PrincipalRow) -> None:
    _require_unique(workbook, PRINCIPALS_SHEET, "PrincipalID", record.principal_id)
    workbook[PRINCIPALS_SHEET].append(serialize_principal(record))


def append_invoice(workbook: Workbook, record: InvoiceRow) -> None:
    """Append an invoice header.

    Raises:
        UniqueConstraintViolation: If the invoice id or serial is already used.
    """

    _require_unique(workbook, INVOICES_SHEET, "InvoiceID", record.invoice_id)
    _require_unique(workbook, INVOICES_SHEET, "Serial", record.serial)
    workbook[INVOICES_SHEET].append(serialize_invoice(record))


def append_invoice_item(workbook: Workbook, record: InvoiceItemRow) -> None:
    workbook[INVOICE_ITEMS_SHEET].append(serialize_invoice_item(record))


def append_journal(workbook: Workbook, record: JournalRow) -> None:
    """Append a journal header.

    Raises:
        UniqueConstraintViolation: If the journal id is taken or the linked
            invoice already has a journal.
    """

    _require_unique(workbook, JOURNALS_SHEET, "JournalID", record.journal_id)
    if record.invoice_id is not None:
        _require_unique(workbook, JOURNALS_SHEET, "InvoiceID", record.invoice_id)
    workbook[JOURNALS_SHEET].append(serialize_journal(record))


def append_journal_item(workbook: Workbook, record: JournalItemRow) -> None:
    workbook[JOURNAL_ITEMS_SHEET].append(serialize_journal_item(record))


def _require_unique(workbook: Workbook, sheet_name: str, column: str, value: str) -> None:
    if locate_row(workbook, sheet_name, column, value) is not None:
        raise UniqueConstraintViolation(f"{sheet_name}.{column} already contains '{value}'")


def update_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str, *, field_values: Mapping[str, Any]) -> None:
    """Update selected columns for the row whose ``key_column`` matches.

    The function locates the target row, validates that each requested field
    exists in the header row, and writes the provided values into the
    corresponding cells. Only the specified fields are modified.

    Args:
        workbook (Workbook): Workbook containing ``sheet_name``.
        sheet_name (str): Worksheet to modify.
        key_column (str): Header title of the identifying column.
        key_value (str): Identifier used to locate the target row.
        field_values (Mapping[str, Any]): Column names mapped to replacement
            values.

    Raises:
        KeyError: If the row or any referenced column cannot be found.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)

    for column_name, value in field_values.items():
        if column_name not in header_map:
            raise KeyError(f"Unknown {sheet_name} field: {column_name}")
        if isinstance(value, Decimal):
            value = money_cell(value)
        sheet.cell(row=row_index, column=header_map[column_name], value=value)


def update_product(workbook: Workbook, product_id: str, *, field_values: Mapping[str, Any]) -> None:
    """Update product columns, rejecting a negative ``StockQty``.

    Raises:
        StockConstraintViolation: If the new ``StockQty`` is below zero.
        KeyError: If the product or a column is unknown.
    """

    stock_qty = field_values.get("StockQty")
    if stock_qty is not None and stock_qty < 0:
        raise StockConstraintViolation(product_id, stock_qty)
    update_row(workbook, PRODUCTS_SHEET, "ProductID", product_id, field_values=field_values)


def update_customer(workbook: Workbook, customer_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, CUSTOMERS_SHEET, "CustomerID", customer_id, field_values=field_values)


def update_invoice(workbook: Workbook, invoice_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, INVOICES_SHEET, "InvoiceID", invoice_id, field_values=field_values)


def update_journal(workbook: Workbook, journal_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, JOURNALS_SHEET, "JournalID", journal_id, field_values=field_values)


def delete_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> None:
    """Remove the row whose ``key_column`` equals ``key_value``.

    Raises:
        KeyError: If no row matches.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")
    workbook[sheet_name].delete_rows(row_index)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the column that stores the
            lookup key.
        key_value (str): Value to match within the key column. Cells are
            compared as strings so numeric-looking ids survive Excel's type
            inference.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value is not None and str(cell_value) == key_value:
            return row_idx

    return None


def _header_map(sheet) -> Dict[str, int]:
    return {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}


def to_money(raw: object) -> Decimal:
    """Normalize a stored money cell into a cent-quantized ``Decimal``.

    Cells written by :func:`money_cell` hold exact decimal text; numeric
    cells entered by hand in Excel are accepted as well.
    """

    if raw is None or raw == "":
        return Decimal("0.00")
    return Decimal(str(raw)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def money_cell(amount: Decimal) -> str:
    """Render a money amount as fixed-point text so Excel never stores it as a double."""

    return format(amount, "f")


def _to_int(raw: object) -> int:
    if raw is None or raw == "":
        return 0
    return int(Decimal(str(raw)))


def _to_text(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def serialize_product(record: ProductRow) -> List[object]:
    """Convert a product dataclass into the worksheet column ordering.

    ``properties`` is stored as JSON text and left uninterpreted by the
    ledger.
    """

    return [
        record.product_id,
        record.product_name,
        record.capacity,
        money_cell(record.unit_price),
        record.stock_qty,
        serialize_properties(record.properties),
    ]


def serialize_properties(properties: Mapping[str, Any]) -> Optional[str]:
    """Encode a product's opaque properties map as JSON text (``None`` if empty)."""

    return json.dumps(dict(properties), sort_keys=True) if properties else None


def serialize_customer(record: CustomerRow) -> List[object]:
    return [record.customer_id, record.customer_name, money_cell(record.opening_debt), money_cell(record.total_debt)]


def serialize_principal(record: PrincipalRow) -> List[object]:
    return [record.principal_id, record.principal_name, record.email]


def serialize_invoice(record: InvoiceRow) -> List[object]:
    return [
        record.invoice_id,
        record.serial,
        record.date_iso,
        record.customer_id,
        record.principal_id,
        money_cell(record.total),
        money_cell(record.collection),
        money_cell(record.balance),
    ]


def serialize_invoice_item(record: InvoiceItemRow) -> List[object]:
    return [
        record.invoice_item_id,
        record.invoice_id,
        record.line_no,
        record.product_id,
        record.capacity,
        money_cell(record.price),
        record.quantity,
        money_cell(record.total),
    ]


def serialize_journal(record: JournalRow) -> List[object]:
    return [
        record.journal_id,
        record.invoice_id,
        record.date_iso,
        record.customer_id,
        record.principal_id,
        money_cell(record.total),
        money_cell(record.collection),
        money_cell(record.balance),
    ]


def serialize_journal_item(record: JournalItemRow) -> List[object]:
    return [
        record.journal_item_id,
        record.journal_id,
        record.line_no,
        record.product_id,
        record.product_name,
        record.capacity,
        money_cell(record.price),
        record.quantity,
        money_cell(record.total),
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Ids and names are coerced to ``str`` to avoid surprises caused by Excel
    interpreting numbers, prices become cent-quantized ``Decimal`` values and
    the properties cell is decoded from JSON (blank cells become ``{}``).
    """

    product_id, product_name, capacity, price_raw, stock_raw, properties_raw = raw_row[:6]
    properties = json.loads(properties_raw) if properties_raw else {}
    return ProductRow(
        product_id=str(product_id),
        product_name=str(product_name) if product_name is not None else "",
        capacity=str(capacity) if capacity is not None else "",
        unit_price=to_money(price_raw),
        stock_qty=_to_int(stock_raw),
        properties=properties,
    )


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    customer_id, customer_name, opening_raw, total_raw = raw_row[:4]
    return CustomerRow(
        customer_id=str(customer_id),
        customer_name=str(customer_name) if customer_name is not None else "",
        opening_debt=to_money(opening_raw),
        total_debt=to_money(total_raw),
    )


def deserialize_principal(raw_row: Sequence[object]) -> PrincipalRow:
    principal_id, principal_name, email = raw_row[:3]
    return PrincipalRow(
        principal_id=str(principal_id),
        principal_name=str(principal_name) if principal_name is not None else "",
        email=_to_text(email),
    )


def deserialize_invoice(raw_row: Sequence[object]) -> InvoiceRow:
    invoice_id, serial, date_iso, customer_id, principal_id, total, collection, balance = raw_row[:8]
    return InvoiceRow(
        invoice_id=str(invoice_id),
        serial=str(serial),
        date_iso=str(date_iso) if date_iso is not None else "",
        customer_id=str(customer_id),
        principal_id=str(principal_id) if principal_id is not None else "",
        total=to_money(total),
        collection=to_money(collection),
        balance=to_money(balance),
    )


def deserialize_invoice_item(raw_row: Sequence[object]) -> InvoiceItemRow:
    item_id, invoice_id, line_no, product_id, capacity, price, quantity, total = raw_row[:8]
    return InvoiceItemRow(
        invoice_item_id=str(item_id),
        invoice_id=str(invoice_id),
        line_no=_to_int(line_no),
        product_id=str(product_id),
        capacity=str(capacity) if capacity is not None else "",
        price=to_money(price),
        quantity=_to_int(quantity),
        total=to_money(total),
    )


def deserialize_journal(raw_row: Sequence[object]) -> JournalRow:
    journal_id, invoice_id, date_iso, customer_id, principal_id, total, collection, balance = raw_row[:8]
    return JournalRow(
        journal_id=str(journal_id),
        invoice_id=_to_text(invoice_id),
        date_iso=str(date_iso) if date_iso is not None else "",
        customer_id=str(customer_id),
        principal_id=str(principal_id) if principal_id is not None else "",
        total=to_money(total),
        collection=to_money(collection),
        balance=to_money(balance),
    )


def deserialize_journal_item(raw_row: Sequence[object]) -> JournalItemRow:
    item_id, journal_id, line_no, product_id, product_name, capacity, price, quantity, total = raw_row[:9]
    return JournalItemRow(
        journal_item_id=str(item_id),
        journal_id=str(journal_id),
        line_no=_to_int(line_no),
        product_id=str(product_id),
        product_name=str(product_name) if product_name is not None else "",
        capacity=str(capacity) if capacity is not None else "",
        price=to_money(price),
        quantity=_to_int(quantity),
        total=to_money(total),
    )


__all__ = [
    "CONFIG_FILE_NAME",
    "SHEET_COLUMNS",
    "StoreError",
    "ConstraintViolation",
    "StockConstraintViolation",
    "UniqueConstraintViolation",
    "ConfigSettings",
    "ProductRow",
    "CustomerRow",
    "PrincipalRow",
    "InvoiceRow",
    "InvoiceItemRow",
    "JournalRow",
    "JournalItemRow",
    "WorkbookStore",
]
