"""Journal replication for committed invoices.

A journal is the ledger-facing mirror of one invoice. Replication is a pure
transform: monetary fields are copied exactly and each line carries the
product's display name and capacity as they were at invoicing time, so
historical views survive later renames, price changes, archival or deletion
of catalog entries.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence, Tuple

from . import data_manager
from .errors import NotFound


def journal_item_id(journal_id: str, line_no: int) -> str:
    return f"{journal_id}-{line_no:03d}"


def replicate_journal(
    invoice: data_manager.InvoiceRow,
    items: Sequence[data_manager.InvoiceItemRow],
    products: Mapping[str, data_manager.ProductRow],
    *,
    journal_id: str,
) -> Tuple[data_manager.JournalRow, List[data_manager.JournalItemRow]]:
    """Build the journal header and lines mirroring ``invoice``.

    Args:
        invoice (data_manager.InvoiceRow): Invoice header being mirrored.
        items (Sequence[data_manager.InvoiceItemRow]): The invoice's lines in
            order.
        products (Mapping[str, data_manager.ProductRow]): Catalog snapshot
            keyed by product id, used for display names.
        journal_id (str): Identifier allocated for the new journal.

    Returns:
        tuple[data_manager.JournalRow, list[data_manager.JournalItemRow]]:
            Rows ready for persistence; nothing is written.

    Raises:
        NotFound: If a line references a product missing from ``products``.
    """
    journal = data_manager.JournalRow(
        journal_id=journal_id,
        invoice_id=invoice.invoice_id,
        date_iso=invoice.date_iso,
        customer_id=invoice.customer_id,
        principal_id=invoice.principal_id,
        total=invoice.total,
        collection=invoice.collection,
        balance=invoice.balance,
    )

    journal_items: List[data_manager.JournalItemRow] = []
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise NotFound("Product", item.product_id)
        journal_items.append(
            data_manager.JournalItemRow(
                journal_item_id=journal_item_id(journal_id, item.line_no),
                journal_id=journal_id,
                line_no=item.line_no,
                product_id=item.product_id,
                product_name=product.product_name,
                capacity=item.capacity,
                price=item.price,
                quantity=item.quantity,
                total=item.total,
            )
        )
    return journal, journal_items
