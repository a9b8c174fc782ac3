"""Invoice creation for the wholesale ledger.

An invoice is recorded in two phases. The first phase validates the command,
resolves the customer and every referenced product in a single read, checks
stock and prices each line; any failure here leaves the workbook untouched.
The second phase opens one store transaction that allocates a unique serial,
inserts the invoice and its lines, decrements stock, adds the balance to the
customer's debt and writes the mirrored journal. Either all of those writes
are committed or none are.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from openpyxl.workbook import Workbook

from . import customer_debt, data_manager, log, stock_ledger
from .constants import SERIAL_SUFFIX_DIGITS, ZERO
from .core_logic import (
    MoneyInput,
    RuntimeContext,
    generate_record_id,
    parse_money,
    quantize_money,
    require_identifier,
    require_nonnegative_money,
    require_positive_quantity,
    resolve_timestamp,
)
from .errors import ConflictError, InsufficientStock, NotFound, PersistenceError, ValidationError
from .journal import replicate_journal


SuffixSource = Callable[[], int]


@dataclass(frozen=True)
class InvoiceItemRequest:
    """One requested invoice line."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class InvoiceCommand:
    """User intent for recording an invoice.

    ``items`` may be empty: a collection-only invoice records a payment with
    a zero total and a negative balance.
    """

    serial: str
    customer_id: str
    principal_id: str
    items: Sequence[InvoiceItemRequest] = field(default_factory=tuple)
    collection: MoneyInput = Decimal("0")
    date: Optional[datetime] = None


@dataclass(frozen=True)
class InvoiceReceipt:
    """Outcome of a committed invoice."""

    invoice_id: str
    serial: str
    total: Decimal
    balance: Decimal
    collection: Decimal
    item_count: int


@dataclass(frozen=True)
class PricedLine:
    product: data_manager.ProductRow
    quantity: int
    total: Decimal


def create_invoice(
    context: RuntimeContext,
    command: InvoiceCommand,
    *,
    suffix_source: Optional[SuffixSource] = None,
) -> InvoiceReceipt:
    """Validate, price and atomically record an invoice.

    Args:
        context (RuntimeContext): Runtime context providing the store and
            settings.
        command (InvoiceCommand): The invoice request.
        suffix_source (Callable[[], int] | None): Supplies the numeric suffix
            used when the requested serial is taken. Defaults to a random
            three-digit draw.

    Returns:
        InvoiceReceipt: Identifier, final serial and amounts of the committed
            invoice.

    Raises:
        ValidationError: If the command is malformed.
        NotFound: If the customer or a product is unknown.
        InsufficientStock: If a product holds fewer units than requested,
            including when a concurrent invoice consumed them first.
        ConflictError: If no free serial is found within the retry budget.
        PersistenceError: If the transaction fails for any other reason.
    """
    serial, customer_id, principal_id, requests, collection = validate_invoice_command(command)
    timestamp = resolve_timestamp(command.date)
    demand = aggregate_demand(requests)

    with context.store.read() as workbook:
        customer = data_manager.find_customer(workbook, customer_id)
        products = resolve_products(workbook, demand)
        levels = stock_ledger.read_stock(workbook, demand)

    if customer is None:
        log.warning("Invoice '%s' rejected: unknown customer '%s'", serial, customer_id)
        raise NotFound("Customer", customer_id)
    check_stock(demand, levels)

    lines = price_lines(requests, products)
    total = quantize_money(sum((line.total for line in lines), ZERO))
    balance = quantize_money(total - collection)

    invoice_id = generate_record_id("INV")
    journal_id = generate_record_id("JRN")
    try:
        with context.store.transaction() as workbook:
            final_serial = resolve_serial(
                workbook,
                serial,
                retry_limit=context.settings.serial_retry_limit,
                suffix_source=suffix_source,
            )
            invoice = data_manager.InvoiceRow(
                invoice_id=invoice_id,
                serial=final_serial,
                date_iso=timestamp.isoformat(),
                customer_id=customer_id,
                principal_id=principal_id,
                total=total,
                collection=collection,
                balance=balance,
            )
            items = build_invoice_items(invoice_id, lines)

            data_manager.append_invoice(workbook, invoice)
            for item in items:
                data_manager.append_invoice_item(workbook, item)

            for product_id, quantity in demand.items():
                stock_ledger.decrement_stock(workbook, product_id, quantity)

            if balance != 0:
                customer_debt.apply_debt_delta(workbook, customer_id, balance)

            journal, journal_items = replicate_journal(invoice, items, products, journal_id=journal_id)
            data_manager.append_journal(workbook, journal)
            for journal_item in journal_items:
                data_manager.append_journal_item(workbook, journal_item)
    except data_manager.StockConstraintViolation as exc:
        log.warning(
            "Invoice '%s' rolled back: stock for '%s' was consumed concurrently",
            serial,
            exc.product_id,
        )
        raise InsufficientStock(exc.product_id, requested=demand.get(exc.product_id, 0)) from exc
    except (data_manager.StoreError, KeyError) as exc:
        log.error("Invoice '%s' rolled back: %s", serial, exc)
        raise PersistenceError(f"Invoice '{serial}' could not be recorded") from exc

    log.info(
        "Recorded invoice '%s' (serial=%s, total=%s, collection=%s, balance=%s, items=%d)",
        invoice_id,
        final_serial,
        total,
        collection,
        balance,
        len(items),
    )
    return InvoiceReceipt(
        invoice_id=invoice_id,
        serial=final_serial,
        total=total,
        balance=balance,
        collection=collection,
        item_count=len(items),
    )


def validate_invoice_command(
    command: InvoiceCommand,
) -> Tuple[str, str, str, List[InvoiceItemRequest], Decimal]:
    """Normalize and validate every field of ``command``.

    Returns:
        tuple: ``(serial, customer_id, principal_id, items, collection)`` with
            identifiers stripped and the collection parsed to ``Decimal``.

    Raises:
        ValidationError: On blank identifiers, non-positive or fractional
            quantities, or a negative or non-decimal collection.
    """
    serial = require_identifier(command.serial, field="serial")
    customer_id = require_identifier(command.customer_id, field="customer_id")
    principal_id = require_identifier(command.principal_id, field="principal_id")

    requests: List[InvoiceItemRequest] = []
    for index, item in enumerate(command.items or ()):
        if not isinstance(item, InvoiceItemRequest):
            raise ValidationError(f"items[{index}] is not an invoice line", field="items")
        requests.append(
            InvoiceItemRequest(
                product_id=require_identifier(item.product_id, field=f"items[{index}].product_id"),
                quantity=require_positive_quantity(item.quantity, field=f"items[{index}].quantity"),
            )
        )

    collection = parse_money(command.collection, field="collection")
    require_nonnegative_money(collection, field="collection")
    return serial, customer_id, principal_id, requests, collection


def aggregate_demand(requests: Sequence[InvoiceItemRequest]) -> Dict[str, int]:
    """Sum requested quantities per product, keeping first-seen order."""
    demand: Dict[str, int] = {}
    for request in requests:
        demand[request.product_id] = demand.get(request.product_id, 0) + request.quantity
    return demand


def resolve_products(workbook: Workbook, product_ids: Iterable[str]) -> Dict[str, data_manager.ProductRow]:
    """Load every referenced product in one pass over the catalog.

    Raises:
        NotFound: Naming the first requested id the catalog does not hold.
    """
    wanted = list(product_ids)
    if not wanted:
        return {}
    lookup = set(wanted)
    found = {
        product.product_id: product
        for product in data_manager.iter_products(workbook)
        if product.product_id in lookup
    }
    for product_id in wanted:
        if product_id not in found:
            log.warning("Invoice rejected: unknown product '%s'", product_id)
            raise NotFound("Product", product_id)
    return found


def check_stock(demand: Mapping[str, int], levels: Mapping[str, int]) -> None:
    """Reject the invoice when any product holds fewer units than requested.

    Raises:
        InsufficientStock: Naming the first short product.
    """
    for product_id, requested in demand.items():
        available = levels.get(product_id, 0)
        if available < requested:
            log.warning(
                "Insufficient stock for '%s': requested %d, available %d",
                product_id,
                requested,
                available,
            )
            raise InsufficientStock(product_id, requested=requested, available=available)


def price_lines(
    requests: Sequence[InvoiceItemRequest],
    products: Mapping[str, data_manager.ProductRow],
) -> List[PricedLine]:
    """Snapshot each line's unit price and compute its total."""
    lines = []
    for request in requests:
        product = products[request.product_id]
        lines.append(
            PricedLine(
                product=product,
                quantity=request.quantity,
                total=quantize_money(product.unit_price * request.quantity),
            )
        )
    return lines


def build_invoice_items(invoice_id: str, lines: Sequence[PricedLine]) -> List[data_manager.InvoiceItemRow]:
    return [
        data_manager.InvoiceItemRow(
            invoice_item_id=f"{invoice_id}-{line_no:03d}",
            invoice_id=invoice_id,
            line_no=line_no,
            product_id=line.product.product_id,
            capacity=line.product.capacity,
            price=line.product.unit_price,
            quantity=line.quantity,
            total=line.total,
        )
        for line_no, line in enumerate(lines, start=1)
    ]


def resolve_serial(
    workbook: Workbook,
    serial: str,
    *,
    retry_limit: int,
    suffix_source: Optional[SuffixSource] = None,
) -> str:
    """Return ``serial`` or, when taken, a free ``{serial}-NNN`` variant.

    Up to ``retry_limit`` suffixed candidates are tried after the requested
    serial.

    Raises:
        ConflictError: If the requested serial and every suffixed candidate
            are already in use.
    """
    if not data_manager.serial_exists(workbook, serial):
        return serial

    draw = suffix_source or _random_suffix
    for attempt in range(1, retry_limit + 1):
        candidate = f"{serial}-{draw():0{SERIAL_SUFFIX_DIGITS}d}"
        if not data_manager.serial_exists(workbook, candidate):
            log.info("Serial '%s' taken; using '%s' (attempt %d)", serial, candidate, attempt)
            return candidate

    log.error("Serial '%s' still colliding after %d retries", serial, retry_limit)
    raise ConflictError(f"Serial '{serial}' is already in use")


def _random_suffix() -> int:
    return random.randrange(10 ** SERIAL_SUFFIX_DIGITS)
