"""Running total-debt accumulator per customer.

Debt is only ever moved by deltas: an invoice adds its balance, an amendment
adds the change in balance. The figure is never recomputed from invoices on
read; :func:`wholesale_ledger.reports.reconcile_customer_debts` exists to
audit that the accumulator and the invoices agree.
"""

from __future__ import annotations

from decimal import Decimal

from openpyxl.workbook import Workbook

from . import data_manager, log
from .core_logic import quantize_money
from .errors import NotFound


def apply_debt_delta(workbook: Workbook, customer_id: str, delta: Decimal) -> Decimal:
    """Add ``delta`` to the customer's total debt inside the open transaction.

    A zero delta leaves the row untouched.

    Returns:
        Decimal: The customer's total debt after the update.

    Raises:
        NotFound: If the customer does not exist.
    """
    customer = data_manager.find_customer(workbook, customer_id)
    if customer is None:
        raise NotFound("Customer", customer_id)
    if delta == 0:
        return customer.total_debt

    updated = quantize_money(customer.total_debt + delta)
    data_manager.update_customer(workbook, customer_id, field_values={"TotalDebt": updated})
    log.debug("Debt for customer '%s' moved by %s to %s", customer_id, delta, updated)
    return updated
