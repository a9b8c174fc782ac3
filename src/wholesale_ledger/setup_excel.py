"""Utility for initializing the wholesale ledger workbook.

The module doubles as a script (``python -m wholesale_ledger.setup_excel``)
and as a library used by tests or other tooling. Shared helpers keep the
workbook bootstrap logic consistent regardless of the execution path.
"""

from __future__ import annotations

import argparse
import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence
import sys

import openpyxl
from openpyxl.styles import Font

from .constants import SHEET_COLUMNS, SheetName

# Seeded so the CLI has a principal to attribute invoices to out of the box.
DEFAULT_PRINCIPAL: Mapping[str, object] = {
    "PrincipalID": "U-0001",
    "PrincipalName": "Front Desk",
    "Email": None,
}

CONFIG_FILE = "config.ini"


@dataclass(frozen=True)
class SetupSettings:
    """Type-safe representation of configuration values used during setup."""

    data_file: Path
    default_principal_id: str


def load_settings(config_path: Path) -> SetupSettings:
    """Read ``config.ini`` and produce :class:`SetupSettings`.

    Relative paths inside the config file are resolved against the config
    file's directory.
    """

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)

    try:
        data_file_raw = parser.get("System", "DataFile")
        default_principal_id = parser.get("Defaults", "DefaultPrincipal")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        data_file_path = (config_path.parent / data_file_path).resolve()

    return SetupSettings(
        data_file=data_file_path,
        default_principal_id=default_principal_id,
    )


def create_master_workbook(
    destination: Path,
    *,
    default_principal_id: Optional[str] = None,
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
    default_principal_template: Mapping[str, object] = DEFAULT_PRINCIPAL,
    overwrite: bool = False,
) -> Path:
    """Create the ledger workbook at ``destination``.

    One sheet per entity is created with bold headers. When
    ``default_principal_id`` is given, a principal row is seeded from
    ``default_principal_template`` under that id. When ``overwrite`` is
    ``False`` (the default) this function raises ``FileExistsError`` if the
    target already exists.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing ledger workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)

    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font

    if default_principal_id is not None:
        principal = dict(default_principal_template)
        principal["PrincipalID"] = default_principal_id
        workbook[SheetName.PRINCIPALS.value].append(
            [
                principal["PrincipalID"],
                principal["PrincipalName"],
                principal["Email"],
            ]
        )

    workbook.save(destination)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Create the workbook named by ``config_path``."""

    settings = load_settings(config_path)
    return create_master_workbook(
        settings.data_file,
        default_principal_id=settings.default_principal_id,
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the ledger workbook")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Wholesale Ledger Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except (FileNotFoundError, KeyError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created ledger workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
