"""Unit tests documenting the expected behavior of the data access layer."""

from __future__ import annotations

import configparser
from decimal import Decimal
from pathlib import Path

import openpyxl
import pytest

from wholesale_ledger import constants, data_manager


def _product(product_id: str = "P1", *, stock_qty: int = 3, **overrides) -> data_manager.ProductRow:
    values = {
        "product_id": product_id,
        "product_name": "Sunflower Oil",
        "capacity": "1L",
        "unit_price": Decimal("4.50"),
        "stock_qty": stock_qty,
        "properties": {},
    }
    values.update(overrides)
    return data_manager.ProductRow(**values)


def _invoice(invoice_id: str = "INV-1", serial: str = "A1") -> data_manager.InvoiceRow:
    return data_manager.InvoiceRow(
        invoice_id=invoice_id,
        serial=serial,
        date_iso="2024-03-01T10:00:00+00:00",
        customer_id="C1",
        principal_id="U-0001",
        total=Decimal("30.00"),
        collection=Decimal("10.00"),
        balance=Decimal("20.00"),
    )


def _journal(journal_id: str = "JRN-1", invoice_id: str | None = "INV-1") -> data_manager.JournalRow:
    return data_manager.JournalRow(
        journal_id=journal_id,
        invoice_id=invoice_id,
        date_iso="2024-03-01T10:00:00+00:00",
        customer_id="C1",
        principal_id="U-0001",
        total=Decimal("30.00"),
        collection=Decimal("10.00"),
        balance=Decimal("20.00"),
    )


@pytest.fixture
def workbook(workbook_factory):
    return openpyxl.load_workbook(workbook_factory())


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_find_config_file_respects_explicit_path(config_file: Path):
    """Supplying an explicit path should be treated as the winning answer."""

    assert data_manager.find_config_file(config_file) == config_file


def test_find_config_file_discovers_in_parent_directory(tmp_path, monkeypatch):
    """Auto-discovery should walk up from the working directory."""

    config_file = tmp_path / "config.ini"
    config_file.write_text("[System]\nDataFile=ledger_workbook.xlsx")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert data_manager.find_config_file() == config_file


def test_find_config_file_raises_when_missing(tmp_path, monkeypatch):
    """Absent configuration should surface a clear FileNotFoundError."""

    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        data_manager.find_config_file()


def test_read_config_loads_sections(config_file: Path):
    """read_config should return a populated ConfigParser."""

    parser = data_manager.read_config(config_file)
    assert parser.get("System", "BusinessName") == "Test Wholesale"
    assert parser.get("Defaults", "DefaultPrincipal") == "U-0001"


def test_read_config_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.read_config(tmp_path / "not_there.ini")


def test_parse_settings_resolves_relative_paths(config_factory):
    """Relative DataFile entries should be anchored to the config location."""

    bundle = config_factory(make_relative=True)
    parser = data_manager.read_config(bundle.config_path)
    settings = data_manager.parse_settings(parser, base_path=bundle.directory)

    assert settings.data_file == bundle.workbook_path.resolve()
    assert settings.business_name == "Test Wholesale"
    assert settings.default_principal_id == "U-0001"
    assert settings.schema_version == constants.EXPECTED_SCHEMA_VERSION


def test_parse_settings_defaults_serial_retry_limit(config_file: Path):
    settings = data_manager.parse_settings(data_manager.read_config(config_file))
    assert settings.serial_retry_limit == constants.DEFAULT_SERIAL_RETRY_LIMIT


def test_parse_settings_reads_serial_retry_limit(config_factory):
    bundle = config_factory(serial_retry_limit=7)
    settings = data_manager.parse_settings(data_manager.read_config(bundle.config_path))
    assert settings.serial_retry_limit == 7


def test_parse_settings_rejects_negative_retry_limit(config_factory):
    bundle = config_factory(serial_retry_limit=-1)
    with pytest.raises(ValueError):
        data_manager.parse_settings(data_manager.read_config(bundle.config_path))


def test_parse_settings_missing_entries_raise_key_error():
    parser = configparser.ConfigParser()
    parser.read_string("[System]\nDataFile = ledger.xlsx\n")

    with pytest.raises(KeyError):
        data_manager.parse_settings(parser)


# ---------------------------------------------------------------------------
# Workbook lifecycle
# ---------------------------------------------------------------------------


def test_open_workbook_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.open_workbook(tmp_path / "missing.xlsx")


def test_save_workbook_replaces_target_without_leftovers(workbook_factory):
    """Atomic saves must not leave temporary files next to the workbook."""

    path = workbook_factory()
    workbook = openpyxl.load_workbook(path)
    data_manager.append_product(workbook, _product())

    data_manager.save_workbook(workbook, path)

    assert sorted(p.name for p in path.parent.iterdir()) == [path.name]
    reloaded = openpyxl.load_workbook(path)
    assert data_manager.find_product(reloaded, "P1") is not None


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


def test_append_product_rejects_negative_stock(workbook):
    with pytest.raises(data_manager.StockConstraintViolation):
        data_manager.append_product(workbook, _product(stock_qty=-1))
    assert list(data_manager.iter_products(workbook)) == []


def test_append_product_rejects_duplicate_id(workbook):
    data_manager.append_product(workbook, _product())
    with pytest.raises(data_manager.UniqueConstraintViolation):
        data_manager.append_product(workbook, _product())


def test_update_product_rejects_negative_stock_and_keeps_row(workbook):
    data_manager.append_product(workbook, _product(stock_qty=2))

    with pytest.raises(data_manager.StockConstraintViolation) as excinfo:
        data_manager.update_product(workbook, "P1", field_values={"StockQty": -1})

    assert excinfo.value.product_id == "P1"
    assert data_manager.find_product(workbook, "P1").stock_qty == 2


def test_append_invoice_rejects_duplicate_serial(workbook):
    data_manager.append_invoice(workbook, _invoice("INV-1", "A1"))
    with pytest.raises(data_manager.UniqueConstraintViolation):
        data_manager.append_invoice(workbook, _invoice("INV-2", "A1"))
    assert data_manager.serial_exists(workbook, "A1")
    assert not data_manager.serial_exists(workbook, "A2")


def test_append_journal_allows_one_journal_per_invoice(workbook):
    data_manager.append_journal(workbook, _journal("JRN-1", "INV-1"))
    with pytest.raises(data_manager.UniqueConstraintViolation):
        data_manager.append_journal(workbook, _journal("JRN-2", "INV-1"))


def test_append_journal_without_invoice_skips_invoice_uniqueness(workbook):
    data_manager.append_journal(workbook, _journal("JRN-1", None))
    data_manager.append_journal(workbook, _journal("JRN-2", None))
    assert [row.invoice_id for row in data_manager.iter_journals(workbook)] == [None, None]


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def test_locate_row_matches_numeric_cells_as_text(workbook):
    workbook[data_manager.CUSTOMERS_SHEET].append([42, "Numeric Id", 0, 0])
    assert data_manager.locate_row(workbook, data_manager.CUSTOMERS_SHEET, "CustomerID", "42") == 2


def test_locate_row_unknown_column_raises(workbook):
    with pytest.raises(KeyError):
        data_manager.locate_row(workbook, data_manager.CUSTOMERS_SHEET, "Nope", "x")


def test_update_row_unknown_field_raises(workbook):
    data_manager.append_customer(
        workbook,
        data_manager.CustomerRow("C1", "Corner Shop", Decimal("0.00"), Decimal("0.00")),
    )
    with pytest.raises(KeyError):
        data_manager.update_customer(workbook, "C1", field_values={"Missing": 1})


def test_delete_row_removes_match_and_rejects_unknown(workbook):
    data_manager.append_product(workbook, _product("P1"))
    data_manager.append_product(workbook, _product("P2"))

    data_manager.delete_row(workbook, data_manager.PRODUCTS_SHEET, "ProductID", "P1")

    assert [row.product_id for row in data_manager.iter_products(workbook)] == ["P2"]
    with pytest.raises(KeyError):
        data_manager.delete_row(workbook, data_manager.PRODUCTS_SHEET, "ProductID", "P1")


def test_product_properties_are_stored_as_json_text(workbook):
    data_manager.append_product(workbook, _product(properties={"origin": "GR", "grade": 1}))

    raw = next(workbook[data_manager.PRODUCTS_SHEET].iter_rows(min_row=2, values_only=True))
    assert raw[5] == '{"grade": 1, "origin": "GR"}'
    assert data_manager.find_product(workbook, "P1").properties == {"grade": 1, "origin": "GR"}


def test_to_money_quantizes_cells():
    assert data_manager.to_money(None) == Decimal("0.00")
    assert data_manager.to_money(10.005) == Decimal("10.01")
    assert data_manager.to_money("3") == Decimal("3.00")
    assert data_manager.to_money("-98765432109876543.21") == Decimal("-98765432109876543.21")


def test_money_is_written_as_exact_text(workbook_factory, sheet_rows):
    path = workbook_factory()
    store = data_manager.WorkbookStore(path)
    debt = Decimal("98765432109876543.21")

    with store.transaction() as workbook:
        data_manager.append_product(workbook, _product(unit_price=Decimal("1234567890123456.78")))
        data_manager.append_customer(
            workbook, data_manager.CustomerRow("C1", "Corner Shop", Decimal("0.00"), Decimal("0.00"))
        )
        data_manager.update_customer(workbook, "C1", field_values={"TotalDebt": debt})

    assert sheet_rows(path, data_manager.PRODUCTS_SHEET)[0][3] == "1234567890123456.78"
    assert sheet_rows(path, data_manager.CUSTOMERS_SHEET)[0][2:] == ("0.00", "98765432109876543.21")
    with data_manager.WorkbookStore(path).read() as workbook:
        assert data_manager.find_customer(workbook, "C1").total_debt == debt


# ---------------------------------------------------------------------------
# WorkbookStore
# ---------------------------------------------------------------------------


def test_transaction_commits_to_disk(workbook_factory, sheet_rows):
    path = workbook_factory()
    store = data_manager.WorkbookStore(path)

    with store.transaction() as workbook:
        data_manager.append_product(workbook, _product())

    assert [row[0] for row in sheet_rows(path, data_manager.PRODUCTS_SHEET)] == ["P1"]


def test_transaction_rolls_back_on_exception(workbook_factory, sheet_rows):
    path = workbook_factory()
    store = data_manager.WorkbookStore(path)

    with pytest.raises(RuntimeError):
        with store.transaction() as workbook:
            data_manager.append_product(workbook, _product())
            raise RuntimeError("boom")

    with store.read() as workbook:
        assert data_manager.find_product(workbook, "P1") is None
    assert sheet_rows(path, data_manager.PRODUCTS_SHEET) == []


def test_transaction_wraps_save_failures(workbook_factory, monkeypatch):
    path = workbook_factory()
    store = data_manager.WorkbookStore(path)

    def _fail(*_args, **_kwargs):
        raise PermissionError("read-only")

    monkeypatch.setattr(data_manager, "save_workbook", _fail)

    with pytest.raises(data_manager.StoreError):
        with store.transaction() as workbook:
            data_manager.append_product(workbook, _product())

    with store.read() as workbook:
        assert data_manager.find_product(workbook, "P1") is None
