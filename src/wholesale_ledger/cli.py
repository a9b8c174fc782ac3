"""Command-line entry points for the wholesale ledger.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the ledger
services, and printing their results. Keeping the CLI thin ensures the same
parser configuration can be reused by tests, scripts, or any alternative
front-end that wants to expose the package capabilities.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import amendments, catalog, core_logic, data_manager, invoicing, log, reports
from .constants import TOP_CUSTOMERS_LIMIT
from .errors import LedgerError, ValidationError


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Command-line tools for the wholesale ledger workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to the nearest config.ini upwards).",
    )
    parser.add_argument(
        "--principal",
        default=None,
        help="Principal recorded on new invoices (defaults to [Defaults] DefaultPrincipal).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as invoices and amendments."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "add-principal": register_add_principal_command(subparsers),
        "restock": register_restock_command(subparsers),
        "invoice": register_invoice_command(subparsers),
        "amend-collection": register_amend_collection_command(subparsers),
        "archive-depleted": register_archive_depleted_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "stock": register_stock_command(subparsers),
        "debts": register_debts_command(subparsers),
        "journal": register_journal_command(subparsers),
        "customer-summary": register_customer_summary_command(subparsers),
        "top-customers": register_top_customers_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Register a new product in the Products sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--product-name", required=True)
        parser.add_argument("--capacity", default="")
        parser.add_argument("--unit-price", required=True)
        parser.add_argument("--stock", type=int, default=0, help="Initial stock quantity.")
        parser.add_argument(
            "--property",
            dest="properties",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Free-form product property; may be repeated.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a new customer in the Customers sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--customer-name", required=True)
        parser.add_argument("--opening-debt", default="0", help="Debt carried over from before the ledger.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer)


def register_add_principal_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-principal``."""
    name = "add-principal"
    help_text = "Register a new principal in the Principals sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--principal-id", required=True)
        parser.add_argument("--principal-name", required=True)
        parser.add_argument("--email", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_principal)


def register_restock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``restock``."""
    name = "restock"
    help_text = "Add units to a product's stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_restock)


def register_invoice_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``invoice``."""
    name = "invoice"
    help_text = "Record an invoice and its mirrored journal."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--serial", required=True)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument(
            "--item",
            dest="items",
            action="append",
            default=[],
            metavar="PRODUCT:QTY",
            help="Invoice line; may be repeated. Omit for a collection-only invoice.",
        )
        parser.add_argument("--collection", default="0")
        parser.add_argument("--date", default=None, help="ISO-8601 invoice date (defaults to now, UTC).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_invoice)


def register_amend_collection_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``amend-collection``."""
    name = "amend-collection"
    help_text = "Change the collected amount on a recorded invoice."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--id", dest="target_id", required=True, help="Journal id or invoice id.")
        parser.add_argument("--collection", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_amend_collection)


def register_archive_depleted_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``archive-depleted``."""
    name = "archive-depleted"
    help_text = "Delete or archive products whose stock reached zero."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_archive_depleted)


def register_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock``."""
    name = "stock"
    help_text = "Display current stock levels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_report)


def register_debts_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``debts``."""
    name = "debts"
    help_text = "Display customer debts reconciled against invoice balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_debts_report)


def register_journal_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``journal``."""
    name = "journal"
    help_text = "Display a journal with its invoice lines."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--id", dest="target_id", required=True, help="Journal id or invoice id.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_journal_report)


def register_customer_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``customer-summary``."""
    name = "customer-summary"
    help_text = "Display a customer's invoices and daily collections."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--start", default=None, help="ISO-8601 start date (inclusive).")
        parser.add_argument("--end", default=None, help="ISO-8601 end date (inclusive).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_customer_summary)


def register_top_customers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``top-customers``."""
    name = "top-customers"
    help_text = "Rank customers by invoiced sales."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--start", default=None, help="ISO-8601 start date (inclusive).")
        parser.add_argument("--end", default=None, help="ISO-8601 end date (inclusive).")
        parser.add_argument("--limit", type=int, default=TOP_CUSTOMERS_LIMIT)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_top_customers)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    return core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_item(raw: str) -> invoicing.InvoiceItemRequest:
    """Parse a ``PRODUCT:QTY`` token into an invoice line request.

    The split happens on the last colon so product ids may contain colons.

    Raises:
        ValidationError: If the token has no colon or the quantity is not an
            integer.
    """
    product_id, separator, quantity_raw = raw.rpartition(":")
    if not separator:
        raise ValidationError(f"Invoice item must look like PRODUCT:QTY, got {raw!r}", field="item")
    try:
        quantity = int(quantity_raw)
    except ValueError as exc:
        raise ValidationError(f"Invoice item quantity must be a whole number, got {quantity_raw!r}", field="item") from exc
    return invoicing.InvoiceItemRequest(product_id=product_id, quantity=quantity)


def parse_date(raw: Optional[str], *, field: str) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO-8601 date, got {raw!r}", field=field) from exc


def parse_properties(pairs: Sequence[str]) -> Dict[str, str]:
    properties: Dict[str, str] = {}
    for pair in pairs:
        key, separator, value = pair.partition("=")
        if not separator or not key.strip():
            raise ValidationError(f"Property must look like KEY=VALUE, got {pair!r}", field="property")
        properties[key.strip()] = value
    return properties


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-product request."""
    return {
        "product_id": args.product_id,
        "product_name": args.product_name,
        "capacity": args.capacity,
        "unit_price": args.unit_price,
        "stock_qty": args.stock,
        "properties": parse_properties(getattr(args, "properties", [])),
    }


def translate_add_customer(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-customer request."""
    return {
        "customer_id": args.customer_id,
        "customer_name": args.customer_name,
        "opening_debt": args.opening_debt,
    }


def translate_add_principal(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-principal request."""
    return {
        "principal_id": args.principal_id,
        "principal_name": args.principal_name,
        "email": args.email,
    }


def translate_invoice(
    args: argparse.Namespace,
    settings: data_manager.ConfigSettings,
) -> invoicing.InvoiceCommand:
    """Translate CLI args into an invoice command object.

    The principal comes from ``--principal`` when given, otherwise from the
    configured default principal.
    """
    principal_id = getattr(args, "principal", None) or settings.default_principal_id
    return invoicing.InvoiceCommand(
        serial=args.serial,
        customer_id=args.customer_id,
        principal_id=principal_id,
        items=tuple(parse_item(raw) for raw in args.items),
        collection=args.collection,
        date=parse_date(args.date, field="date"),
    )


def translate_date_range(args: argparse.Namespace) -> core_logic.DateRange:
    """Translate ``--start``/``--end`` into a report date range."""
    return core_logic.DateRange.from_dates(
        start=parse_date(getattr(args, "start", None), field="start"),
        end=parse_date(getattr(args, "end", None), field="end"),
    )


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow."""
    payload = translate_add_product(args)
    record = catalog.add_product(context, **payload)
    print(f"Added product {record.product_id} ({record.product_name}), stock {record.stock_qty}")
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-customer workflow."""
    payload = translate_add_customer(args)
    record = catalog.add_customer(context, **payload)
    print(f"Added customer {record.customer_id} ({record.customer_name}), debt {record.total_debt}")
    return 0


def run_add_principal(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-principal workflow."""
    payload = translate_add_principal(args)
    record = catalog.add_principal(context, **payload)
    print(f"Added principal {record.principal_id} ({record.principal_name})")
    return 0


def run_restock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the restock workflow."""
    level = catalog.restock_product(context, args.product_id, args.quantity)
    print(f"Stock for {args.product_id} is now {level}")
    return 0


def run_invoice(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the invoice workflow."""
    command = translate_invoice(args, context.settings)
    receipt = invoicing.create_invoice(context, command)
    print(
        f"Recorded invoice {receipt.invoice_id} serial {receipt.serial}: "
        f"total {receipt.total}, collection {receipt.collection}, balance {receipt.balance}"
    )
    return 0


def run_amend_collection(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the collection amendment workflow."""
    journal = amendments.amend_collection(context, args.target_id, args.collection)
    print(f"Journal {journal.journal_id}: collection {journal.collection}, balance {journal.balance}")
    return 0


def run_archive_depleted(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the depleted-product maintenance step."""
    report = catalog.archive_depleted_products(context)
    print(f"Deleted: {', '.join(report.deleted) or '-'}")
    print(f"Archived: {', '.join(report.archived) or '-'}")
    return 0


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the stock reporting workflow."""
    for product_id, level in sorted(reports.stock_levels(context).items()):
        print(f"{product_id}\t{level}")
    return 0


def run_debts_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the customer debt reporting workflow."""
    for row in reports.reconcile_customer_debts(context):
        marker = "" if row.balanced else f"\tMISMATCH (expected {row.expected_debt})"
        print(f"{row.customer_id}\t{row.customer_name}\t{row.recorded_debt}{marker}")
    return 0


def run_journal_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the journal detail workflow."""
    detail = reports.get_journal_detail(context, args.target_id)
    print(
        f"Journal {detail['id']} ({detail['date'].isoformat()}) "
        f"customer {detail['customer']['id']} ({detail['customer']['name']}) "
        f"principal {detail['principal']['id']}"
    )
    invoice = detail["invoice"]
    if invoice is not None:
        print(f"Invoice {invoice['id']} serial {invoice['serial']}")
        for item in invoice["items"]:
            print(f"  {item['product_id']}\t{item['product_name']}\t{item['quantity']} x {item['price']} = {item['total']}")
    print(f"Total {detail['total']}, collection {detail['collection']}, balance {detail['balance']}")
    return 0


def run_customer_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the customer summary workflow."""
    summary = reports.get_customer_summary(context, args.customer_id, translate_date_range(args))
    customer = summary["customer"]
    totals = summary["totals"]
    print(f"{customer['id']} ({customer['name']}): debt {customer['total_debt']}")
    print(
        f"{totals['invoice_count']} invoices, sales {totals['sales_total']}, "
        f"collections {totals['collections_total']}, balances {totals['balances_total']}"
    )
    for invoice in summary["invoices"]:
        print(f"  {invoice['date'].date().isoformat()}\t{invoice['serial']}\t{invoice['total']}\t{invoice['balance']}")
    return 0


def run_top_customers(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the top customers ranking workflow."""
    rows: List[Dict[str, Any]] = reports.rank_top_customers(context, translate_date_range(args), limit=args.limit)
    for rank, row in enumerate(rows, start=1):
        print(f"{rank}. {row['customer_id']}\t{row['name']}\t{row['sales']}\t{row['invoice_count']}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, LedgerError) and error.client_fixable:
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        core_logic.ensure_schema_version(context)
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":
    raise SystemExit(main())
