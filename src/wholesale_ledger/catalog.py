"""Catalog and customer records the ledger depends on.

Products, customers and principals are owned by other systems; the helpers
here are the minimal write paths needed to seed and maintain them alongside
the ledger. :func:`archive_depleted_products` is a maintenance step run
separately from invoicing: it never runs inside an invoice transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Iterator, List, Mapping, Optional

from openpyxl.workbook import Workbook

from . import data_manager, log, stock_ledger
from .constants import ARCHIVED_PROPERTY, ZERO
from .core_logic import (
    MoneyInput,
    RuntimeContext,
    parse_money,
    require_identifier,
    require_nonnegative_money,
    require_positive_quantity,
)
from .errors import PersistenceError, ValidationError


@dataclass(frozen=True)
class ArchiveReport:
    """Products removed or archived by one maintenance run."""

    deleted: List[str] = field(default_factory=list)
    archived: List[str] = field(default_factory=list)


@contextmanager
def _catalog_transaction(context: RuntimeContext, action: str) -> Iterator[Workbook]:
    try:
        with context.store.transaction() as workbook:
            yield workbook
    except data_manager.ConstraintViolation as exc:
        log.error("%s rejected: %s", action, exc)
        raise ValidationError(str(exc)) from exc
    except (data_manager.StoreError, KeyError) as exc:
        log.error("%s failed: %s", action, exc)
        raise PersistenceError(f"{action} failed") from exc


def add_product(
    context: RuntimeContext,
    *,
    product_id: str,
    product_name: str,
    capacity: str,
    unit_price: MoneyInput,
    stock_qty: int = 0,
    properties: Optional[Mapping[str, Any]] = None,
) -> data_manager.ProductRow:
    """Register a product. ``properties`` is stored as-is and never interpreted."""
    price = parse_money(unit_price, field="unit_price")
    require_nonnegative_money(price, field="unit_price")
    if isinstance(stock_qty, bool) or not isinstance(stock_qty, int) or stock_qty < 0:
        raise ValidationError("stock_qty must be a whole number of zero or more", field="stock_qty")

    record = data_manager.ProductRow(
        product_id=require_identifier(product_id, field="product_id"),
        product_name=require_identifier(product_name, field="product_name"),
        capacity=capacity or "",
        unit_price=price,
        stock_qty=stock_qty,
        properties=dict(properties or {}),
    )
    with _catalog_transaction(context, f"Adding product '{record.product_id}'") as workbook:
        data_manager.append_product(workbook, record)
    log.info("Added product '%s' (price=%s, stock=%d)", record.product_id, price, stock_qty)
    return record


def add_customer(
    context: RuntimeContext,
    *,
    customer_id: str,
    customer_name: str,
    opening_debt: MoneyInput = ZERO,
) -> data_manager.CustomerRow:
    """Register a customer, optionally carrying debt from before the ledger.

    The opening debt seeds ``TotalDebt`` and is kept separately so that debt
    reconciliation stays exact.
    """
    debt = parse_money(opening_debt, field="opening_debt")
    record = data_manager.CustomerRow(
        customer_id=require_identifier(customer_id, field="customer_id"),
        customer_name=require_identifier(customer_name, field="customer_name"),
        opening_debt=debt,
        total_debt=debt,
    )
    with _catalog_transaction(context, f"Adding customer '{record.customer_id}'") as workbook:
        data_manager.append_customer(workbook, record)
    log.info("Added customer '%s' (opening debt=%s)", record.customer_id, debt)
    return record


def add_principal(
    context: RuntimeContext,
    *,
    principal_id: str,
    principal_name: str,
    email: Optional[str] = None,
) -> data_manager.PrincipalRow:
    record = data_manager.PrincipalRow(
        principal_id=require_identifier(principal_id, field="principal_id"),
        principal_name=require_identifier(principal_name, field="principal_name"),
        email=email or None,
    )
    with _catalog_transaction(context, f"Adding principal '{record.principal_id}'") as workbook:
        data_manager.append_principal(workbook, record)
    log.info("Added principal '%s'", record.principal_id)
    return record


def restock_product(context: RuntimeContext, product_id: str, quantity: int) -> int:
    """Add ``quantity`` units to a product and return its new stock level."""
    product_id = require_identifier(product_id, field="product_id")
    quantity = require_positive_quantity(quantity)
    with _catalog_transaction(context, f"Restocking product '{product_id}'") as workbook:
        level = stock_ledger.increment_stock(workbook, product_id, quantity)
    log.info("Restocked product '%s' by %d to %d", product_id, quantity, level)
    return level


def archive_depleted_products(context: RuntimeContext, *, now: Optional[datetime] = None) -> ArchiveReport:
    """Retire every product whose stock has reached zero.

    A depleted product that no invoice line references is deleted outright.
    One that is referenced is kept, renamed ``"{name} [ARCHIVED {millis}]"``
    and flagged ``archived`` in its properties. Already archived products are
    skipped, so running the step twice changes nothing the second time.
    Journal lines keep the names they were recorded with.
    """
    moment = now or datetime.now(UTC)
    stamp = int(moment.timestamp() * 1000)
    report = ArchiveReport()

    with _catalog_transaction(context, "Archiving depleted products") as workbook:
        referenced = {item.product_id for item in data_manager.iter_invoice_items(workbook)}
        depleted = [
            product for product in data_manager.iter_products(workbook)
            if product.stock_qty <= 0 and not product.properties.get(ARCHIVED_PROPERTY)
        ]
        for product in depleted:
            if product.product_id not in referenced:
                data_manager.delete_row(workbook, data_manager.PRODUCTS_SHEET, "ProductID", product.product_id)
                report.deleted.append(product.product_id)
                continue
            properties = {**product.properties, ARCHIVED_PROPERTY: True}
            data_manager.update_product(
                workbook,
                product.product_id,
                field_values={
                    "ProductName": f"{product.product_name} [ARCHIVED {stamp}]",
                    "StockQty": 0,
                    "Properties": data_manager.serialize_properties(properties),
                },
            )
            report.archived.append(product.product_id)

    log.info(
        "Archive maintenance: deleted %d, archived %d products",
        len(report.deleted),
        len(report.archived),
    )
    return report
