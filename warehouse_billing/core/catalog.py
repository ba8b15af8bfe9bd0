"""
Rate catalog value types and charge validation.

Defines the closed charge categories, the accessorial sub-service codes and
the single charge record that rate sheets are built from.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import (
    InvalidAccessorialType,
    InvalidCategory,
    InvalidRate,
    MissingAccessorialType,
    MissingType,
    MissingUnit,
    UnexpectedAccessorialType,
)

# Stored rates keep 4 fractional digits
RATE_QUANTUM = Decimal("0.0001")


class ChargeCategory(Enum):
    """Billing category of a charge or activity."""
    STORAGE = "STORAGE"
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    LABOR = "LABOR"
    ACCESSORIAL = "ACCESSORIAL"


class AccessorialType(Enum):
    """Add-on warehouse services billed under the ACCESSORIAL category."""
    # Handling / palletization
    PALLETIZATION = "PALLETIZATION"
    SHRINK_WRAPPING = "SHRINK_WRAPPING"
    STRAPPING = "STRAPPING"
    # Labeling & documentation
    LABELING = "LABELING"
    RELABELING = "RELABELING"
    BARCODE_PRINTING = "BARCODE_PRINTING"
    SPECIAL_DOCUMENTATION = "SPECIAL_DOCUMENTATION"
    # Storage exceptions
    OVERSIZED_STORAGE = "OVERSIZED_STORAGE"
    HAZMAT_STORAGE = "HAZMAT_STORAGE"
    TEMP_CONTROLLED_STORAGE = "TEMP_CONTROLLED_STORAGE"
    # Order processing add-ons
    KITTING = "KITTING"
    REPACKING = "REPACKING"
    RETURNS_PROCESSING = "RETURNS_PROCESSING"
    # Inventory adjustments
    CYCLE_COUNT = "CYCLE_COUNT"
    SHRINKAGE = "SHRINKAGE"
    INVENTORY_AUDIT = "INVENTORY_AUDIT"
    # Loading / unloading
    LIFTGATE_SERVICE = "LIFTGATE_SERVICE"
    INSIDE_DELIVERY = "INSIDE_DELIVERY"
    CROSS_DOCKING = "CROSS_DOCKING"
    # Surcharges
    WEEKEND_HANDLING = "WEEKEND_HANDLING"
    HOLIDAY_HANDLING = "HOLIDAY_HANDLING"
    AFTER_HOURS_HANDLING = "AFTER_HOURS_HANDLING"
    RUSH_ORDER = "RUSH_ORDER"
    SPECIAL_HANDLING = "SPECIAL_HANDLING"


@dataclass(frozen=True)
class Charge:
    """A priced (category, type) pair with a per-unit rate.

    ``id`` is the storage identity and takes no part in equality, so two
    charges with the same business content compare equal whether or not
    they have been persisted.
    """
    category: ChargeCategory
    type: Optional[str]
    rate: Decimal
    unit: str
    accessorial_type: Optional[AccessorialType] = None
    id: Optional[int] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[ChargeCategory, str, Optional[AccessorialType]]:
        """Business key that must be unique within one warehouse."""
        return (self.category, (self.type or "").strip(), self.accessorial_type)


def parse_category(value: Any) -> ChargeCategory:
    """Resolve a category from an enum member or its name.

    Raises:
        InvalidCategory: If the value is not a recognized category
    """
    if isinstance(value, ChargeCategory):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidCategory("category", "Charge category cannot be null or empty")
    try:
        return ChargeCategory(value.strip().upper())
    except ValueError:
        valid = [c.value for c in ChargeCategory]
        raise InvalidCategory("category", f"unknown category '{value}', must be one of: {valid}")


def parse_accessorial_type(value: Any) -> Optional[AccessorialType]:
    """Resolve an optional accessorial type from an enum member or its name."""
    if value is None or isinstance(value, AccessorialType):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return AccessorialType(value.strip().upper())
    except ValueError:
        raise InvalidAccessorialType(
            "accessorial_type", f"unknown accessorial type '{value}'"
        )


def to_decimal(value: Any, field_name: str = "rate") -> Optional[Decimal]:
    """Convert user input to Decimal through its textual form.

    Floats go through ``str`` so that ``2.5`` becomes ``Decimal("2.5")``
    rather than its binary expansion.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidRate(field_name, f"{field_name} must be a number")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidRate(field_name, f"{field_name} '{value}' is not a number")


def validate_charge(charge: Charge) -> None:
    """Validate a charge against the category coupling rules.

    Rules, in order:
    1. category must be a recognized ChargeCategory
    2. ACCESSORIAL: accessorial_type required, rate > 0, unit non-blank
    3. otherwise: accessorial_type absent, type non-blank, rate > 0, unit non-blank

    Raises:
        ValidationError: The subclass naming the first rule violated
    """
    if not isinstance(charge.category, ChargeCategory):
        # Raises InvalidCategory for anything that is not a category name
        parse_category(charge.category)
        raise InvalidCategory("category", "category must be a ChargeCategory member")

    if charge.category == ChargeCategory.ACCESSORIAL:
        if charge.accessorial_type is None:
            raise MissingAccessorialType(
                "accessorial_type", "Accessorial charge must have an accessorialType"
            )
    else:
        if charge.accessorial_type is not None:
            raise UnexpectedAccessorialType(
                "accessorial_type",
                f"accessorialType must be absent when category={charge.category.value}",
            )
        if charge.type is None or not str(charge.type).strip():
            raise MissingType(
                "type", f"type is required when category={charge.category.value}"
            )

    _validate_rate(charge.rate)

    if charge.unit is None or not str(charge.unit).strip():
        raise MissingUnit("unit", "Charge unit cannot be null or empty")


def _validate_rate(rate: Any) -> None:
    if rate is None:
        raise InvalidRate("rate", "Charge rate is required")
    if isinstance(rate, (bool, float)) or not isinstance(rate, (Decimal, int)):
        raise InvalidRate("rate", "Charge rate must be a Decimal")
    if not Decimal(rate).is_finite() or rate <= 0:
        raise InvalidRate("rate", "Charge rate must be greater than 0")
    # Must stay positive at the stored precision
    try:
        stored = Decimal(rate).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidRate("rate", f"Charge rate {rate} cannot be stored") from None
    if stored <= 0:
        raise InvalidRate("rate", f"Charge rate must be at least {RATE_QUANTUM}")


def charge_from_dict(data: Dict[str, Any]) -> Charge:
    """Build and validate a charge from a plain mapping.

    Accepts both ``accessorial_type`` and ``accessorialType`` spellings.

    Raises:
        ValidationError: If the charge is malformed
    """
    accessorial = data.get("accessorial_type", data.get("accessorialType"))
    charge = Charge(
        category=parse_category(data.get("category")),
        type=data.get("type"),
        rate=to_decimal(data.get("rate")),
        unit=data.get("unit"),
        accessorial_type=parse_accessorial_type(accessorial),
    )
    validate_charge(charge)
    return charge


def charge_to_dict(charge: Charge) -> Dict[str, Any]:
    """Plain mapping view of a charge, rates rendered as strings."""
    return {
        "category": charge.category.value,
        "type": charge.type,
        "rate": str(charge.rate),
        "unit": charge.unit,
        "accessorial_type": charge.accessorial_type.value if charge.accessorial_type else None,
    }
