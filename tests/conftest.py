"""Shared pytest fixtures and utilities for wholesale ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import openpyxl
import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from wholesale_ledger import catalog, cli, constants, core_logic, data_manager  # noqa: E402
from wholesale_ledger.setup_excel import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
DEFAULT_PRINCIPAL_ID = "U-0001"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "BusinessName = {business_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Defaults]\n"
    "DefaultPrincipal = {default_principal_id}\n"
)
_INVOICING_TEMPLATE = "\n[Invoicing]\nSerialRetryLimit = {serial_retry_limit}\n"


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    default_principal_id: str
    schema_version: str
    business_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized ledger workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        default_principal_id: str | None = DEFAULT_PRINCIPAL_ID,
        filename: str = "ledger_workbook.xlsx",
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, default_principal_id=default_principal_id, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        business_name: str = "Test Wholesale",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        default_principal_id: str = DEFAULT_PRINCIPAL_ID,
        serial_retry_limit: int | None = None,
    ) -> ConfigBundle:
        bundle_id = uuid.uuid4().hex
        bundle_dir = tmp_path / f"bundle_{bundle_id}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(
            subdir=f"bundle_{bundle_id}",
            default_principal_id=default_principal_id,
        )
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_text = _CONFIG_TEMPLATE.format(
            data_file=data_file_entry,
            business_name=business_name,
            schema_version=schema_version,
            default_principal_id=default_principal_id,
        )
        if serial_retry_limit is not None:
            config_text += _INVOICING_TEMPLATE.format(serial_retry_limit=serial_retry_limit)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(config_text)
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            default_principal_id=default_principal_id,
            schema_version=schema_version,
            business_name=business_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


@pytest.fixture
def seeded_context(runtime_context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    """Runtime context holding product ``P`` (price 10, stock 5) and customer ``C`` (no debt)."""

    catalog.add_product(
        runtime_context,
        product_id="P",
        product_name="Olive Oil",
        capacity="5L",
        unit_price=Decimal("10.00"),
        stock_qty=5,
    )
    catalog.add_customer(runtime_context, customer_id="C", customer_name="Corner Shop")
    return runtime_context


def read_sheet(workbook_path: Path, sheet_name: str) -> list[tuple]:
    """Return the data rows of ``sheet_name`` as stored on disk."""

    workbook = openpyxl.load_workbook(workbook_path)
    return [
        row for row in workbook[sheet_name].iter_rows(min_row=2, values_only=True)
        if any(cell is not None for cell in row)
    ]


@pytest.fixture
def sheet_rows() -> Callable[[Path, str], list[tuple]]:
    """Expose :func:`read_sheet` to tests that inspect the persisted file."""

    return read_sheet


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="ledger-cli", description="Ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for unit tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "ledger_workbook.xlsx",
        business_name="Test Wholesale",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        default_principal_id=DEFAULT_PRINCIPAL_ID,
    )
