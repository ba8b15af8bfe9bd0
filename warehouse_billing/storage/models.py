"""
Data models for storage layer.

Records that exist only for persistence: invoice templates and their
assignment to customers.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class InvoiceTemplate:
    """A rendering template the downstream invoice renderer can use."""
    name: str
    file_path: str
    is_active: bool = True
    id: Optional[int] = None


@dataclass(frozen=True)
class CustomerInvoiceTemplate:
    """Assignment of a template to a customer over an effective date range."""
    customer_id: str
    template_id: int
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    id: Optional[int] = None
