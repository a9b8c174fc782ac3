"""Read-only projections over the ledger workbook.

Every function here takes one consistent snapshot through
``context.store.read()`` and returns plain dictionaries or dataclasses;
nothing in this module writes. Monetary values stay ``Decimal`` and dates are
returned as timezone-aware ``datetime`` objects.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from . import data_manager, log
from .amendments import locate_journal
from .constants import CUSTOMER_SUMMARY_INVOICE_LIMIT, TOP_CUSTOMERS_LIMIT, ZERO
from .core_logic import DateRange, RuntimeContext, parse_timestamp
from .errors import NotFound


UNKNOWN_NAME = "(unknown)"


@dataclass(frozen=True)
class DebtReconciliation:
    """Recorded debt of one customer against what its invoices imply."""

    customer_id: str
    customer_name: str
    recorded_debt: Decimal
    expected_debt: Decimal

    @property
    def balanced(self) -> bool:
        return self.recorded_debt == self.expected_debt


def _customer_projection(customer: Optional[data_manager.CustomerRow], customer_id: str) -> Dict[str, Any]:
    return {
        "id": customer_id,
        "name": customer.customer_name if customer is not None else UNKNOWN_NAME,
    }


def _principal_projection(principal: Optional[data_manager.PrincipalRow], principal_id: str) -> Dict[str, Any]:
    return {
        "id": principal_id,
        "name": principal.principal_name if principal is not None else UNKNOWN_NAME,
        "email": principal.email if principal is not None else None,
    }


def get_journal_detail(context: RuntimeContext, journal_or_invoice_id: str) -> Dict[str, Any]:
    """Project a journal together with its invoice, lines, customer and principal.

    Line product names come from the journal's snapshot, so they show the
    name the product had when the invoice was recorded.

    Raises:
        NotFound: If no journal matches ``journal_or_invoice_id``.
    """
    with context.store.read() as workbook:
        journal = locate_journal(workbook, journal_or_invoice_id)
        customer = data_manager.find_customer(workbook, journal.customer_id)
        principal = data_manager.find_principal(workbook, journal.principal_id)
        invoice = data_manager.find_invoice(workbook, journal.invoice_id) if journal.invoice_id else None
        invoice_items = [
            item for item in data_manager.iter_invoice_items(workbook)
            if invoice is not None and item.invoice_id == invoice.invoice_id
        ]
        snapshot_names = {
            item.line_no: item.product_name
            for item in data_manager.iter_journal_items(workbook)
            if item.journal_id == journal.journal_id
        }

    customer_view = _customer_projection(customer, journal.customer_id)
    principal_view = _principal_projection(principal, journal.principal_id)

    invoice_view = None
    if invoice is not None:
        invoice_view = {
            "id": invoice.invoice_id,
            "serial": invoice.serial,
            "date": parse_timestamp(invoice.date_iso),
            "total": invoice.total,
            "collection": invoice.collection,
            "balance": invoice.balance,
            "customer": customer_view,
            "principal": principal_view,
            "items": [
                {
                    "id": item.invoice_item_id,
                    "product_id": item.product_id,
                    "product_name": snapshot_names.get(item.line_no, ""),
                    "capacity": item.capacity,
                    "price": item.price,
                    "quantity": item.quantity,
                    "total": item.total,
                }
                for item in sorted(invoice_items, key=lambda row: row.line_no)
            ],
        }

    log.debug("Built journal detail for '%s'", journal.journal_id)
    return {
        "id": journal.journal_id,
        "date": parse_timestamp(journal.date_iso),
        "total": journal.total,
        "collection": journal.collection,
        "balance": journal.balance,
        "customer": customer_view,
        "principal": principal_view,
        "invoice": invoice_view,
    }


def get_customer_summary(
    context: RuntimeContext,
    customer_id: str,
    date_range: Optional[DateRange] = None,
) -> Dict[str, Any]:
    """Summarize a customer's invoices, optionally within ``date_range``.

    Totals and the daily series cover every invoice in the range; the
    ``invoices`` listing is newest-first and capped at
    ``CUSTOMER_SUMMARY_INVOICE_LIMIT`` rows. The cap only trims the listing: a
    customer with more invoices than the cap still gets a series built from
    all of them, so older days do not drop out of the chart.

    Raises:
        NotFound: If the customer is unknown.
    """
    window = date_range or DateRange()
    with context.store.read() as workbook:
        customer = data_manager.find_customer(workbook, customer_id)
        if customer is None:
            log.warning("Customer summary requested for unknown id '%s'", customer_id)
            raise NotFound("Customer", customer_id)
        principals = {row.principal_id: row for row in data_manager.iter_principals(workbook)}
        dated = [
            (parse_timestamp(invoice.date_iso), invoice)
            for invoice in data_manager.iter_invoices(workbook)
            if invoice.customer_id == customer_id
        ]

    in_range = [(moment, invoice) for moment, invoice in dated if window.contains(moment)]
    in_range.sort(key=lambda pair: pair[0], reverse=True)

    series: Dict[str, Dict[str, Any]] = {}
    for moment, invoice in in_range:
        key = moment.date().isoformat()
        bucket = series.setdefault(key, {"date": key, "collection": ZERO, "balance": ZERO})
        bucket["collection"] += invoice.collection
        bucket["balance"] += invoice.balance

    invoices = [
        {
            "id": invoice.invoice_id,
            "serial": invoice.serial,
            "date": moment,
            "total": invoice.total,
            "collection": invoice.collection,
            "balance": invoice.balance,
            "principal": {
                "id": invoice.principal_id,
                "name": principals[invoice.principal_id].principal_name
                if invoice.principal_id in principals else UNKNOWN_NAME,
            },
        }
        for moment, invoice in in_range[:CUSTOMER_SUMMARY_INVOICE_LIMIT]
    ]

    return {
        "customer": {
            "id": customer.customer_id,
            "name": customer.customer_name,
            "total_debt": customer.total_debt,
        },
        "invoices": invoices,
        "totals": {
            "invoice_count": len(in_range),
            "sales_total": sum((invoice.total for _, invoice in in_range), ZERO),
            "collections_total": sum((invoice.collection for _, invoice in in_range), ZERO),
            "balances_total": sum((invoice.balance for _, invoice in in_range), ZERO),
        },
        "series": [series[key] for key in sorted(series)],
    }


def rank_top_customers(
    context: RuntimeContext,
    date_range: Optional[DateRange] = None,
    *,
    limit: int = TOP_CUSTOMERS_LIMIT,
) -> List[Dict[str, Any]]:
    """Rank customers by invoiced sales within ``date_range``, highest first."""
    window = date_range or DateRange()
    with context.store.read() as workbook:
        names = {row.customer_id: row.customer_name for row in data_manager.iter_customers(workbook)}
        invoices = [
            invoice for invoice in data_manager.iter_invoices(workbook)
            if window.contains(parse_timestamp(invoice.date_iso))
        ]

    grouped: Dict[str, Dict[str, Any]] = defaultdict(
        lambda: {"sales": ZERO, "collections": ZERO, "invoice_count": 0}
    )
    for invoice in invoices:
        bucket = grouped[invoice.customer_id]
        bucket["sales"] += invoice.total
        bucket["collections"] += invoice.collection
        bucket["invoice_count"] += 1

    rows = [
        {"customer_id": customer_id, "name": names.get(customer_id, UNKNOWN_NAME), **totals}
        for customer_id, totals in grouped.items()
    ]
    rows.sort(key=lambda row: (-row["sales"], row["customer_id"]))
    return rows[:limit]


def reconcile_customer_debts(context: RuntimeContext) -> List[DebtReconciliation]:
    """Compare each customer's accumulated debt with opening debt plus balances."""
    with context.store.read() as workbook:
        customers = list(data_manager.iter_customers(workbook))
        balances: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        for invoice in data_manager.iter_invoices(workbook):
            balances[invoice.customer_id] += invoice.balance

    results = [
        DebtReconciliation(
            customer_id=customer.customer_id,
            customer_name=customer.customer_name,
            recorded_debt=customer.total_debt,
            expected_debt=customer.opening_debt + balances[customer.customer_id],
        )
        for customer in customers
    ]
    drifted = [row.customer_id for row in results if not row.balanced]
    if drifted:
        log.warning("Debt reconciliation mismatch for customers: %s", ", ".join(drifted))
    return results


def stock_levels(context: RuntimeContext) -> Dict[str, int]:
    """Return current stock for every product, keyed by product id."""
    with context.store.read() as workbook:
        return {product.product_id: product.stock_qty for product in data_manager.iter_products(workbook)}
