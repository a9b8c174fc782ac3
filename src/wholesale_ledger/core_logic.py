"""Shared runtime plumbing for the wholesale ledger services.

This module owns the :class:`RuntimeContext` every service receives, the
loading of configuration plus workbook store, and the small validation and
normalization helpers (money, quantities, timestamps, identifiers) the
invoicing, amendment and reporting modules share.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from . import data_manager, log
from .constants import EXPECTED_SCHEMA_VERSION, MONEY_QUANTUM
from .errors import ValidationError


MoneyInput = Union[Decimal, int, str]


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the workbook store used by services."""

    settings: data_manager.ConfigSettings
    store: data_manager.WorkbookStore


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window used by reports. Either bound may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < normalize_timestamp(self.start):
            return False
        if self.end is not None and moment > normalize_timestamp(self.end):
            return False
        return True

    @classmethod
    def from_dates(cls, start: Optional[datetime] = None, end: Optional[datetime] = None) -> "DateRange":
        """Build a range whose ``end`` bound covers the whole final day when
        it is given at midnight."""
        if end is not None and end.time() == time(0, 0):
            end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
        return cls(start=start, end=end)


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and open the workbook store.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Context ready for the ledger services.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    store = data_manager.WorkbookStore(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, store=store)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def normalize_timestamp(candidate: datetime) -> datetime:
    """Return ``candidate`` as an aware datetime, treating naive values as UTC."""

    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate


def resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Resolve optional timestamps into consistent, timezone-aware values.

    Args:
        candidate (datetime | None): Caller-provided timestamp, usually sourced
            from a command object.

    Returns:
        datetime: ``candidate`` normalized to an aware value when provided,
            otherwise the current UTC datetime.
    """

    return normalize_timestamp(candidate) if candidate is not None else datetime.now(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware datetime."""

    return normalize_timestamp(datetime.fromisoformat(value))


def generate_record_id(prefix: str) -> str:
    """Generate a unique row identifier such as ``INV-3f2a9c1d0b7e``."""

    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_money(value: MoneyInput, *, field: str) -> Decimal:
    """Convert caller input into a cent-quantized ``Decimal``.

    Binary floats are refused outright so rounding drift can never enter the
    ledger; callers pass ``Decimal``, ``int`` or numeric strings.

    Raises:
        ValidationError: If ``value`` is a float, a bool, or not numeric.
    """
    if isinstance(value, (bool, float)):
        log.error("Rejected %s value for '%s'", type(value).__name__, field)
        raise ValidationError(f"{field} must be a decimal amount, not {type(value).__name__}", field=field)
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field} is not a valid amount: {value!r}", field=field) from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} is not a valid amount: {value!r}", field=field)
    try:
        return quantize_money(amount)
    except InvalidOperation as exc:
        log.error("Amount for '%s' exceeds the supported precision: %s", field, value)
        raise ValidationError(f"{field} is too large: {value!r}", field=field) from exc


def require_nonnegative_money(amount: Decimal, *, field: str) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValidationError: If ``amount`` is less than zero.
    """
    if amount < Decimal("0"):
        log.error("Monetary value validation failed for '%s': %s", field, amount)
        raise ValidationError(f"{field} must be zero or positive", field=field)


def require_positive_quantity(quantity: object, *, field: str = "quantity") -> int:
    """Validate that a quantity is a strictly positive whole number.

    Returns:
        int: The validated quantity.

    Raises:
        ValidationError: If ``quantity`` is not an integer or is below one.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        log.error("Quantity validation failed: %r", quantity)
        raise ValidationError(f"{field} must be a whole number", field=field)
    if quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return quantity


def require_identifier(value: object, *, field: str) -> str:
    """Return ``value`` stripped, rejecting missing or blank identifiers."""

    if not isinstance(value, str) or not value.strip():
        log.error("Identifier validation failed for '%s': %r", field, value)
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()
