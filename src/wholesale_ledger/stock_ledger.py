"""Quantity-on-hand bookkeeping for products.

The ledger reads stock in batches and applies relative decrements inside the
caller's transaction. It deliberately does not re-check non-negativity: the
invoice builder validates stock before opening its transaction, and the data
layer rejects any write that would leave ``StockQty`` below zero, which is
what catches two invoices racing for the last units.
"""

from __future__ import annotations

from typing import Dict, Iterable

from openpyxl.workbook import Workbook

from . import data_manager, log
from .errors import NotFound


def read_stock(workbook: Workbook, product_ids: Iterable[str]) -> Dict[str, int]:
    """Return current ``StockQty`` for each known id in ``product_ids``.

    Unknown ids are simply absent from the result.
    """
    wanted = set(product_ids)
    levels = {
        product.product_id: product.stock_qty
        for product in data_manager.iter_products(workbook)
        if product.product_id in wanted
    }
    log.debug("Read stock for %d of %d products", len(levels), len(wanted))
    return levels


def decrement_stock(workbook: Workbook, product_id: str, quantity: int) -> int:
    """Reduce a product's stock by ``quantity`` and return the new level.

    Raises:
        NotFound: If the product does not exist.
        data_manager.StockConstraintViolation: If the store refuses the write
            because stock would become negative.
    """
    product = data_manager.find_product(workbook, product_id)
    if product is None:
        raise NotFound("Product", product_id)
    remaining = product.stock_qty - quantity
    data_manager.update_product(workbook, product_id, field_values={"StockQty": remaining})
    log.debug("Stock for '%s' decremented by %d to %d", product_id, quantity, remaining)
    return remaining


def increment_stock(workbook: Workbook, product_id: str, quantity: int) -> int:
    """Add ``quantity`` units to a product's stock and return the new level."""
    product = data_manager.find_product(workbook, product_id)
    if product is None:
        raise NotFound("Product", product_id)
    replenished = product.stock_qty + quantity
    data_manager.update_product(workbook, product_id, field_values={"StockQty": replenished})
    return replenished
