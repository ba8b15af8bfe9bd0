"""
Invoice value types produced by the rating engine.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class InvoiceStatus(Enum):
    """PREVIEW invoices are never persisted; FINAL invoices are."""
    PREVIEW = "PREVIEW"
    FINAL = "FINAL"


class DiagnosticKind(Enum):
    """Why an activity produced no invoice line."""
    UNRESOLVED_WAREHOUSE = "UNRESOLVED_WAREHOUSE"
    UNRESOLVED_CHARGE = "UNRESOLVED_CHARGE"


@dataclass(frozen=True)
class InvoiceLine:
    """One rated activity: amount = quantity * rate."""
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class RatingDiagnostic:
    """Non-fatal warning for an activity that was skipped during rating."""
    kind: DiagnosticKind
    activity_index: int
    activity_type: str
    warehouse_id: str
    message: str


@dataclass(frozen=True)
class Invoice:
    """Rated invoice header, ordered lines and total.

    ``diagnostics`` lists the activities that produced no line. They belong
    to the rating response only: storage does not keep them and they take no
    part in equality.
    """
    rate_sheet_id: Optional[int]
    customer_id: str
    warehouse_id: str
    period_start: date
    period_end: date
    status: InvoiceStatus
    lines: Tuple[InvoiceLine, ...]
    total_amount: Decimal
    id: Optional[int] = None
    diagnostics: Tuple[RatingDiagnostic, ...] = field(default=(), compare=False)

    @property
    def is_preview(self) -> bool:
        return self.status == InvoiceStatus.PREVIEW

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)
