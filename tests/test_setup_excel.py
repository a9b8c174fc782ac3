"""Tests for bootstrapping the ledger workbook."""

from __future__ import annotations

from pathlib import Path

import openpyxl
import pytest

from wholesale_ledger import constants, setup_excel


def test_create_master_workbook_writes_every_sheet(tmp_path: Path):
    path = setup_excel.create_master_workbook(tmp_path / "ledger.xlsx")

    workbook = openpyxl.load_workbook(path)
    assert workbook.sheetnames == list(constants.SHEET_COLUMNS)
    for sheet_name, columns in constants.SHEET_COLUMNS.items():
        header = [cell.value for cell in workbook[sheet_name][1]]
        assert header == list(columns)
    assert workbook[constants.SheetName.PRINCIPALS.value].max_row == 1


def test_create_master_workbook_seeds_default_principal(tmp_path: Path):
    path = setup_excel.create_master_workbook(tmp_path / "ledger.xlsx", default_principal_id="U-0042")

    sheet = openpyxl.load_workbook(path)[constants.SheetName.PRINCIPALS.value]
    assert [cell.value for cell in sheet[2]] == ["U-0042", "Front Desk", None]


def test_create_master_workbook_refuses_to_overwrite(tmp_path: Path):
    path = setup_excel.create_master_workbook(tmp_path / "ledger.xlsx")

    with pytest.raises(FileExistsError):
        setup_excel.create_master_workbook(path)
    setup_excel.create_master_workbook(path, overwrite=True)


def test_main_creates_workbook_from_config(tmp_path: Path, capsys):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[System]\nDataFile = books/ledger.xlsx\n\n[Defaults]\nDefaultPrincipal = U-0001\n"
    )

    assert setup_excel.main(["--config", str(config_path)]) == 0
    assert (tmp_path / "books" / "ledger.xlsx").exists()
    assert "[SUCCESS]" in capsys.readouterr().out

    assert setup_excel.main(["--config", str(config_path)]) == 1
    assert "--force" in capsys.readouterr().out


def test_main_reports_missing_config(tmp_path: Path):
    assert setup_excel.main(["--config", str(tmp_path / "missing.ini")]) == 1
