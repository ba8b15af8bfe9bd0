"""
Typed exceptions for the billing core.

Every error carries a machine-readable ``code`` class attribute plus the
structured values that caused it, so callers catch by type and report by
field instead of parsing messages.

    BillingError
    +-- NotFoundError
    |   +-- RateSheetNotFound
    |   +-- ChargeNotFound
    |   +-- TemplateNotFound
    +-- ValidationError
    |   +-- InvalidCategory
    |   +-- InvalidAccessorialType
    |   +-- MissingAccessorialType
    |   +-- UnexpectedAccessorialType
    |   +-- MissingType
    |   +-- InvalidRate
    |   +-- MissingUnit
    |   +-- MissingWarehouseId
    |   +-- DuplicateWarehouseId
    |   +-- DuplicateCharge
    |   +-- MissingCustomerId
    |   +-- MissingName
    +-- AmbiguousRateSheet
    +-- InvalidArgument
        +-- InvalidPeriod
        +-- EmptyWarehouseSet

None of these are retried: each reflects bad caller input or a data
integrity condition.
"""

from typing import Iterable, Optional


class BillingError(Exception):
    """Base exception for all billing errors."""

    code: str = "BILLING_ERROR"


# Not found


class NotFoundError(BillingError):
    """A referenced aggregate or record does not exist."""

    code: str = "NOT_FOUND"


class RateSheetNotFound(NotFoundError):
    """No rate sheet for the given identity or search criteria."""

    code: str = "RATE_SHEET_NOT_FOUND"

    def __init__(self, rate_sheet_id=None, message: Optional[str] = None):
        self.rate_sheet_id = rate_sheet_id
        super().__init__(message or f"RateSheet not found: {rate_sheet_id}")


class ChargeNotFound(NotFoundError):
    """No charge in the warehouse matches the requested category and type."""

    code: str = "CHARGE_NOT_FOUND"

    def __init__(self, warehouse_id: str, category, charge_type: Optional[str]):
        self.warehouse_id = warehouse_id
        self.category = category
        self.charge_type = charge_type
        super().__init__(
            f"No charge for category={getattr(category, 'value', category)} "
            f"type={charge_type} in warehouse {warehouse_id}"
        )


class TemplateNotFound(NotFoundError):
    """No invoice template could be resolved."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, message: str, customer_id: Optional[str] = None,
                 template_id: Optional[int] = None):
        self.customer_id = customer_id
        self.template_id = template_id
        super().__init__(message)


# Validation


class ValidationError(BillingError):
    """A charge, warehouse or rate sheet breaks a structural rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class InvalidCategory(ValidationError):
    code: str = "INVALID_CATEGORY"


class InvalidAccessorialType(ValidationError):
    code: str = "INVALID_ACCESSORIAL_TYPE"


class MissingAccessorialType(ValidationError):
    code: str = "MISSING_ACCESSORIAL_TYPE"


class UnexpectedAccessorialType(ValidationError):
    code: str = "UNEXPECTED_ACCESSORIAL_TYPE"


class MissingType(ValidationError):
    code: str = "MISSING_TYPE"


class InvalidRate(ValidationError):
    code: str = "INVALID_RATE"


class MissingUnit(ValidationError):
    code: str = "MISSING_UNIT"


class MissingWarehouseId(ValidationError):
    code: str = "MISSING_WAREHOUSE_ID"


class DuplicateWarehouseId(ValidationError):
    code: str = "DUPLICATE_WAREHOUSE_ID"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__("warehouse_id", f"duplicate warehouseId {warehouse_id}")


class DuplicateCharge(ValidationError):
    code: str = "DUPLICATE_CHARGE"

    def __init__(self, warehouse_id: str, key: tuple):
        self.warehouse_id = warehouse_id
        self.key = key
        super().__init__(
            "charges",
            f"warehouse {warehouse_id} defines charge {key} more than once",
        )


class MissingCustomerId(ValidationError):
    code: str = "MISSING_CUSTOMER_ID"


class MissingName(ValidationError):
    code: str = "MISSING_NAME"


# Conflicts


class AmbiguousRateSheet(BillingError):
    """More than one rate sheet matched a lookup that must be unique."""

    code: str = "AMBIGUOUS_RATE_SHEET"

    def __init__(self, customer_id: str, customer_name: Optional[str],
                 warehouse_ids: Iterable[str], match_count: int):
        self.customer_id = customer_id
        self.customer_name = customer_name
        self.warehouse_ids = sorted(warehouse_ids)
        self.match_count = match_count
        super().__init__(
            f"Multiple RateSheets ({match_count}) matched for CustomerId={customer_id}, "
            f"CustomerName={customer_name}, WarehouseIds={self.warehouse_ids}. "
            "Provide a unique customerName or ensure data uniqueness."
        )


# Arguments


class InvalidArgument(BillingError):
    """A caller-supplied argument is unusable."""

    code: str = "INVALID_ARGUMENT"


class InvalidPeriod(InvalidArgument):
    code: str = "INVALID_PERIOD"

    def __init__(self, period_start, period_end):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(f"periodEnd {period_end} is before periodStart {period_start}")


class EmptyWarehouseSet(InvalidArgument):
    code: str = "EMPTY_WAREHOUSE_SET"

    def __init__(self):
        super().__init__("At least one valid warehouseId is required")
