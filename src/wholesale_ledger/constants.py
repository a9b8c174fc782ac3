"""Constants shared across the wholesale ledger modules.

Centralises sheet names, column layouts and invoicing defaults so that the
data access layer (DAL), the ledger services and the CLI rely on a single
source of truth for the workbook schema.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Mapping, Sequence


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Money is stored and compared at cent precision.
MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_SERIAL_RETRY_LIMIT = 3
SERIAL_SUFFIX_DIGITS = 3

CUSTOMER_SUMMARY_INVOICE_LIMIT = 100
TOP_CUSTOMERS_LIMIT = 10

ARCHIVED_PROPERTY = "archived"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    CUSTOMERS = "Customers"
    PRINCIPALS = "Principals"
    INVOICES = "Invoices"
    INVOICE_ITEMS = "InvoiceItems"
    JOURNALS = "Journals"
    JOURNAL_ITEMS = "JournalItems"


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.PRODUCTS.value: [
        "ProductID",
        "ProductName",
        "Capacity",
        "UnitPrice",
        "StockQty",
        "Properties",
    ],
    SheetName.CUSTOMERS.value: [
        "CustomerID",
        "CustomerName",
        "OpeningDebt",
        "TotalDebt",
    ],
    SheetName.PRINCIPALS.value: [
        "PrincipalID",
        "PrincipalName",
        "Email",
    ],
    SheetName.INVOICES.value: [
        "InvoiceID",
        "Serial",
        "Date",
        "CustomerID",
        "PrincipalID",
        "Total",
        "Collection",
        "Balance",
    ],
    SheetName.INVOICE_ITEMS.value: [
        "InvoiceItemID",
        "InvoiceID",
        "LineNo",
        "ProductID",
        "Capacity",
        "Price",
        "Quantity",
        "Total",
    ],
    SheetName.JOURNALS.value: [
        "JournalID",
        "InvoiceID",
        "Date",
        "CustomerID",
        "PrincipalID",
        "Total",
        "Collection",
        "Balance",
    ],
    SheetName.JOURNAL_ITEMS.value: [
        "JournalItemID",
        "JournalID",
        "LineNo",
        "ProductID",
        "ProductName",
        "Capacity",
        "Price",
        "Quantity",
        "Total",
    ],
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MONEY_QUANTUM",
    "ZERO",
    "DEFAULT_SERIAL_RETRY_LIMIT",
    "SERIAL_SUFFIX_DIGITS",
    "CUSTOMER_SUMMARY_INVOICE_LIMIT",
    "TOP_CUSTOMERS_LIMIT",
    "ARCHIVED_PROPERTY",
    "SheetName",
    "SHEET_COLUMNS",
]
