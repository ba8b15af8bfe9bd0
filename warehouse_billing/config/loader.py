"""
Configuration management and loading.

Handles application settings and the YAML files that carry rate sheets and
invoice requests into the system.
"""

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from warehouse_billing.core.catalog import (
    charge_from_dict,
    parse_accessorial_type,
    parse_category,
    to_decimal,
)
from warehouse_billing.core.rate_sheet import RateSheet, Warehouse
from warehouse_billing.core.rating import Activity, InvoiceRequest
from warehouse_billing.storage.db import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class BillingSettings:
    """Runtime settings for the billing tools."""
    db_path: str = DEFAULT_DB_PATH
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings values."""
        if not self.db_path or not str(self.db_path).strip():
            raise ValueError("db_path must not be empty")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {sorted(_LOG_LEVELS)}")


def _read_yaml(path: str, kind: str) -> Any:
    """Read a YAML document, failing loudly on a missing or invalid file."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in {kind.lower()} file {path}: {e}")


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown = set(data.keys()) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {path}: {unknown}")


def load_settings(path: str) -> BillingSettings:
    """Load and validate billing settings from a YAML file.

    Args:
        path: Path to YAML settings file

    Returns:
        Validated BillingSettings

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If settings are invalid
    """
    raw = _read_yaml(path, "Settings")
    if raw is None:
        return BillingSettings()
    if not isinstance(raw, dict):
        raise ValueError("Settings file must contain a mapping")

    _check_keys(raw, {'db_path', 'log_level'}, "settings")

    log_level = raw.get('log_level', "INFO")
    if not isinstance(log_level, str):
        raise ValueError("'log_level' must be a string")

    return BillingSettings(
        db_path=str(raw.get('db_path', DEFAULT_DB_PATH)),
        log_level=log_level.upper()
    )


def load_rate_sheets(path: str) -> List[RateSheet]:
    """Load rate sheet payloads from a YAML file.

    Accepted layouts:
    - a top-level list of rate sheets
    - a mapping with a ``rate_sheets`` list
    - a mapping of identifier -> rate sheet

    Every charge is validated; the returned sheets have no storage identity.

    Args:
        path: Path to YAML file

    Returns:
        Rate sheets in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If the structure is invalid
        ValidationError: If a charge or warehouse breaks a rate sheet rule
    """
    raw = _read_yaml(path, "Rate sheet")
    if not raw:
        raise ValueError(f"Rate sheet file is empty: {path}")

    if isinstance(raw, list):
        entries = [(f"rate_sheets[{i}]", item) for i, item in enumerate(raw)]
    elif isinstance(raw, dict) and isinstance(raw.get('rate_sheets'), list):
        _check_keys(raw, {'rate_sheets'}, path)
        entries = [(f"rate_sheets[{i}]", item) for i, item in enumerate(raw['rate_sheets'])]
    elif isinstance(raw, dict):
        entries = [(str(key), item) for key, item in raw.items()]
    else:
        raise ValueError("Rate sheet file must contain a list or a mapping")

    rate_sheets = [parse_rate_sheet(item, where) for where, item in entries]
    logger.info("rate_sheets_loaded", extra={"path": str(path), "count": len(rate_sheets)})
    return rate_sheets


def parse_rate_sheet(data: Any, where: str = "rate_sheet") -> RateSheet:
    """Parse one rate sheet mapping into an unsaved, validated aggregate."""
    if not isinstance(data, dict):
        raise ValueError(f"{where} must be a dictionary")
    _check_keys(data, {'customer_id', 'name', 'warehouses'}, where)

    warehouses_data = data.get('warehouses') or []
    if not isinstance(warehouses_data, list):
        raise ValueError(f"'warehouses' in {where} must be a list")

    warehouses = []
    for i, wh_data in enumerate(warehouses_data):
        wh_where = f"{where}.warehouses[{i}]"
        if not isinstance(wh_data, dict):
            raise ValueError(f"{wh_where} must be a dictionary")
        _check_keys(wh_data, {'warehouse_id', 'charges'}, wh_where)

        charges_data = wh_data.get('charges') or []
        if not isinstance(charges_data, list):
            raise ValueError(f"'charges' in {wh_where} must be a list")
        for j, charge_data in enumerate(charges_data):
            if not isinstance(charge_data, dict):
                raise ValueError(f"{wh_where}.charges[{j}] must be a dictionary")
            _check_keys(
                charge_data,
                {'category', 'type', 'rate', 'unit', 'accessorial_type'},
                f"{wh_where}.charges[{j}]"
            )

        warehouse_id = wh_data.get('warehouse_id')
        warehouses.append(Warehouse(
            warehouse_id=str(warehouse_id) if warehouse_id is not None else None,
            charges=[charge_from_dict(c) for c in charges_data]
        ))

    customer_id = data.get('customer_id')
    return RateSheet.create(
        customer_id=str(customer_id) if customer_id is not None else None,
        name=data.get('name'),
        warehouses=warehouses
    )


def load_invoice_request(path: str) -> InvoiceRequest:
    """Load an invoice request (period plus activities) from a YAML file.

    Every activity is billed against the request's warehouse_id.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If the request is invalid
    """
    raw = _read_yaml(path, "Invoice request")
    if not isinstance(raw, dict):
        raise ValueError("Invoice request file must contain a mapping")
    return parse_invoice_request(raw)


def parse_invoice_request(data: Dict) -> InvoiceRequest:
    """Parse an invoice request mapping."""
    _check_keys(data, {'warehouse_id', 'period_start', 'period_end', 'activities'}, "request")

    for required in ('warehouse_id', 'period_start', 'period_end'):
        if data.get(required) in (None, ""):
            raise ValueError(f"Missing required '{required}' in request")

    warehouse_id = str(data['warehouse_id'])
    activities_data = data.get('activities') or []
    if not isinstance(activities_data, list):
        raise ValueError("'activities' must be a list")

    activities = []
    for i, item in enumerate(activities_data):
        if not isinstance(item, dict):
            raise ValueError(f"activities[{i}] must be a dictionary")
        _check_keys(item, {'type', 'category', 'quantity', 'accessorial_type'}, f"activities[{i}]")
        if not item.get('type'):
            raise ValueError(f"Missing required 'type' in activities[{i}]")
        quantity = to_decimal(item.get('quantity'), "quantity")
        if quantity is None:
            raise ValueError(f"Missing required 'quantity' in activities[{i}]")
        activities.append(Activity(
            type=str(item['type']),
            category=parse_category(item.get('category')),
            quantity=quantity,
            warehouse_id=warehouse_id,
            accessorial_type=parse_accessorial_type(item.get('accessorial_type'))
        ))

    return InvoiceRequest(
        warehouse_id=warehouse_id,
        period_start=_parse_date(data['period_start'], 'period_start'),
        period_end=_parse_date(data['period_end'], 'period_end'),
        activities=activities
    )


def _parse_date(value: Any, name: str) -> date:
    # PyYAML already turns unquoted ISO dates into date objects
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"'{name}' must be an ISO date (YYYY-MM-DD), got {value!r}")
