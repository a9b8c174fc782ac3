"""Retroactive collection amendment for recorded invoices.

Changing the amount collected on an invoice changes its balance. The journal
and the invoice receive the same new collection and balance, and the
customer's debt moves by the *difference* between the old and new balance,
never by the new balance itself, so debt accumulated from other invoices is
left intact.
"""

from __future__ import annotations

from dataclasses import replace

from openpyxl.workbook import Workbook

from . import customer_debt, data_manager, log
from .core_logic import MoneyInput, RuntimeContext, parse_money, quantize_money, require_identifier, require_nonnegative_money
from .errors import NotFound, PersistenceError


def locate_journal(workbook: Workbook, journal_or_invoice_id: str) -> data_manager.JournalRow:
    """Find a journal by its own id, falling back to its invoice id.

    Raises:
        NotFound: If neither a journal nor an invoice's journal matches.
    """
    journal = data_manager.find_journal(workbook, journal_or_invoice_id)
    if journal is None:
        journal = data_manager.find_journal_by_invoice(workbook, journal_or_invoice_id)
    if journal is None:
        log.warning("Journal lookup failed for id '%s'", journal_or_invoice_id)
        raise NotFound("Journal", journal_or_invoice_id)
    return journal


def amend_collection(
    context: RuntimeContext,
    journal_or_invoice_id: str,
    new_collection: MoneyInput,
) -> data_manager.JournalRow:
    """Set a new collection on a journal/invoice pair and settle the debt delta.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        journal_or_invoice_id (str): Journal id, or the id of the invoice the
            journal mirrors.
        new_collection (Decimal | int | str): Replacement collected amount.

    Returns:
        data_manager.JournalRow: The journal as committed.

    Raises:
        ValidationError: If the id is blank or the amount is negative or not
            a decimal value. Raised before the store is touched.
        NotFound: If no journal matches, or its customer is missing.
        PersistenceError: If the transaction fails for any other reason.
    """
    target_id = require_identifier(journal_or_invoice_id, field="journal_or_invoice_id")
    collection = parse_money(new_collection, field="collection")
    require_nonnegative_money(collection, field="collection")

    try:
        with context.store.transaction() as workbook:
            journal = locate_journal(workbook, target_id)
            new_balance = quantize_money(journal.total - collection)
            delta = new_balance - journal.balance

            fields = {"Collection": collection, "Balance": new_balance}
            data_manager.update_journal(workbook, journal.journal_id, field_values=fields)
            if journal.invoice_id is not None:
                data_manager.update_invoice(workbook, journal.invoice_id, field_values=fields)

            if delta != 0:
                customer_debt.apply_debt_delta(workbook, journal.customer_id, delta)
    except (data_manager.StoreError, KeyError) as exc:
        log.error("Collection amendment on '%s' rolled back: %s", target_id, exc)
        raise PersistenceError(f"Collection for '{target_id}' could not be amended") from exc

    log.info(
        "Amended collection on journal '%s': %s -> %s (balance %s -> %s, debt delta %s)",
        journal.journal_id,
        journal.collection,
        collection,
        journal.balance,
        new_balance,
        delta,
    )
    return replace(journal, collection=collection, balance=new_balance)
