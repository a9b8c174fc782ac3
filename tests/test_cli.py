"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path

import pytest

from wholesale_ledger import cli, core_logic, data_manager, invoicing
from wholesale_ledger.errors import InsufficientStock, NotFound, PersistenceError, ValidationError


WRITE_COMMANDS = {
    "add-product",
    "add-customer",
    "add-principal",
    "restock",
    "invoice",
    "amend-collection",
    "archive-depleted",
}

READ_COMMANDS = {
    "stock",
    "debts",
    "journal",
    "customer-summary",
    "top-customers",
}


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return set(action.choices)
    return set()


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    parser = cli.build_parser()
    assert parser.prog == "ledger-cli"
    assert "ledger" in (parser.description or "")


def test_configure_subcommands_registers_all_commands(cli_parser):
    command_table = cli.configure_subcommands(cli_parser)

    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(cli_parser) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)

    assert set(specs) == WRITE_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_register_read_commands_returns_command_specs(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)

    assert set(specs) == READ_COMMANDS
    for name in READ_COMMANDS:
        assert name in subparsers_action.choices


def test_invoice_parser_collects_repeated_items():
    parser = cli.build_parser()
    cli.configure_subcommands(parser)

    args = parser.parse_args(
        ["invoice", "--serial", "A1", "--customer-id", "C", "--item", "P:3", "--item", "Q:1", "--collection", "10"]
    )

    assert args.command == "invoice"
    assert args.items == ["P:3", "Q:1"]
    assert args.collection == "10"


def test_build_command_table_rejects_duplicates(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert list(table) == ["alpha", "beta", "gamma"]

    with pytest.raises(ValueError):
        cli.build_command_table([*command_spec_iterable, command_spec_iterable[0]])


def test_dispatch_command_unknown_raises():
    with pytest.raises(KeyError):
        cli.dispatch_command(None, argparse.Namespace(command="nope"), {})


# ---------------------------------------------------------------------------
# Translation helpers
# ---------------------------------------------------------------------------


def test_parse_item_splits_on_last_colon():
    assert cli.parse_item("NS:P-1:4") == invoicing.InvoiceItemRequest("NS:P-1", 4)


@pytest.mark.parametrize("raw", ["P", "P:three", "P:"])
def test_parse_item_rejects_malformed_tokens(raw):
    with pytest.raises(ValidationError):
        cli.parse_item(raw)


def test_parse_properties_builds_mapping():
    assert cli.parse_properties(["origin=GR", "grade = A"]) == {"origin": "GR", "grade": " A"}
    with pytest.raises(ValidationError):
        cli.parse_properties(["novalue"])


def test_translate_invoice_defaults_principal(settings):
    args = argparse.Namespace(
        serial="A1",
        customer_id="C",
        items=["P:2"],
        collection="5",
        date="2024-03-01T10:00:00",
        principal=None,
    )

    command = cli.translate_invoice(args, settings)

    assert command.principal_id == settings.default_principal_id
    assert command.items == (invoicing.InvoiceItemRequest("P", 2),)
    assert command.collection == "5"
    assert command.date.year == 2024


def test_translate_invoice_prefers_explicit_principal(settings):
    args = argparse.Namespace(serial="A1", customer_id="C", items=[], collection="5", date=None, principal="U-0009")

    assert cli.translate_invoice(args, settings).principal_id == "U-0009"


def test_translate_date_range_rejects_bad_dates():
    with pytest.raises(ValidationError):
        cli.translate_date_range(argparse.Namespace(start="yesterday", end=None))


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValidationError("bad"), 2),
        (NotFound("Customer", "C"), 2),
        (InsufficientStock("P", requested=3, available=1), 2),
        (PersistenceError("disk"), 1),
        (FileNotFoundError("config.ini"), 3),
        (RuntimeError("schema"), 1),
    ],
)
def test_handle_cli_error_maps_exit_codes(error, expected):
    assert cli.handle_cli_error(error) == expected


# ---------------------------------------------------------------------------
# End-to-end through main
# ---------------------------------------------------------------------------


def _run(config_path: Path, *argv: str) -> int:
    return cli.main(["--config", str(config_path), *argv])


def test_main_records_invoice_and_reports(config_file: Path, capsys):
    assert _run(config_file, "add-customer", "--customer-id", "C", "--customer-name", "Corner Shop") == 0
    assert _run(
        config_file,
        "add-product",
        "--product-id",
        "P",
        "--product-name",
        "Olive Oil",
        "--unit-price",
        "10",
        "--stock",
        "5",
    ) == 0
    capsys.readouterr()

    assert _run(config_file, "invoice", "--serial", "A1", "--customer-id", "C", "--item", "P:3", "--collection", "10") == 0
    assert "balance 20.00" in capsys.readouterr().out

    assert _run(config_file, "stock") == 0
    assert "P\t2" in capsys.readouterr().out

    assert _run(config_file, "invoice", "--serial", "A2", "--customer-id", "C", "--item", "P:3") == 2

    context = core_logic.load_runtime_context(config_file)
    with context.store.read() as workbook:
        invoice = next(iter(data_manager.iter_invoices(workbook)))
        customer = data_manager.find_customer(workbook, "C")
    assert customer.total_debt == Decimal("20.00")

    assert _run(config_file, "amend-collection", "--id", invoice.invoice_id, "--collection", "30") == 0
    capsys.readouterr()

    assert _run(config_file, "debts") == 0
    out = capsys.readouterr().out
    assert "C\tCorner Shop\t0.00" in out
    assert "MISMATCH" not in out

    assert _run(config_file, "journal", "--id", invoice.invoice_id) == 0
    assert "Olive Oil" in capsys.readouterr().out


def test_main_missing_config_returns_three(tmp_path: Path):
    assert _run(tmp_path / "absent.ini", "stock") == 3


def test_main_schema_mismatch_returns_one(config_factory):
    bundle = config_factory(schema_version="0.1.0")
    assert _run(bundle.config_path, "stock") == 1
