"""
Billing client.

Caller-facing operations over the rating core and the billing repository.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from ..core.context import RequestContext, log_extra
from ..core.errors import RateSheetNotFound
from ..core.finder import find_rate_sheet
from ..core.invoice import Invoice
from ..core.merge import merge
from ..core.rate_sheet import RateSheet, Warehouse
from ..core.rating import InvoiceRequest, generate_invoice
from ..core.templates import resolve_customer_template
from ..storage.db import DEFAULT_DB_PATH
from ..storage.models import CustomerInvoiceTemplate, InvoiceTemplate
from ..storage.repository import BillingRepository

logger = logging.getLogger(__name__)


class BillingClient:
    """Entry point for rating invoices and maintaining rate sheets.
    
    Each call is independent: one load and, for writes, one save against
    the repository. Errors from the core propagate unchanged.
    """
    
    def __init__(self, db_path: Optional[str] = None,
                 repository: Optional[BillingRepository] = None):
        """Initialize the billing client.
        
        Args:
            db_path: Database file path (defaults to "warehouse_billing.db")
            repository: Repository to use instead of opening db_path
            
        Raises:
            ValueError: If db_path is given but blank
        """
        if db_path is not None and not db_path.strip():
            raise ValueError("db_path cannot be empty")
        
        self.db_path = db_path or DEFAULT_DB_PATH
        self.repository = repository or BillingRepository(self.db_path)
    
    # Invoices
    
    def preview_invoice(self, rate_sheet_id: int, request: InvoiceRequest,
                        context: Optional[RequestContext] = None) -> Invoice:
        """Rate a request without persisting anything."""
        return generate_invoice(
            self.repository, self.repository, rate_sheet_id, request,
            preview=True, context=context
        )
    
    def finalize_invoice(self, rate_sheet_id: int, request: InvoiceRequest,
                         context: Optional[RequestContext] = None) -> Invoice:
        """Rate a request and persist the FINAL invoice.
        
        Returns:
            The persisted invoice with its assigned id
        """
        return generate_invoice(
            self.repository, self.repository, rate_sheet_id, request,
            preview=False, context=context
        )
    
    # Rate sheets
    
    def create_rate_sheet(self, customer_id: str, name: str,
                          warehouses: Iterable[Warehouse],
                          context: Optional[RequestContext] = None) -> RateSheet:
        """Validate and store a new rate sheet.
        
        Raises:
            ValidationError: If the header, a warehouse or a charge is invalid
        """
        rate_sheet = RateSheet.create(customer_id, name, warehouses)
        saved = self.repository.save_rate_sheet(rate_sheet)
        logger.info(
            "rate_sheet_created",
            extra=log_extra(context, rate_sheet_id=saved.id, customer_id=customer_id)
        )
        return saved
    
    def update_rate_sheet(self, rate_sheet_id: int, customer_id: str, name: str,
                          warehouses: Iterable[Warehouse],
                          context: Optional[RequestContext] = None) -> RateSheet:
        """Merge an update payload into a stored rate sheet and save it.
        
        The incoming warehouses are the full desired warehouse set.
        
        Raises:
            RateSheetNotFound: If no rate sheet has this id
            ValidationError: If the payload is invalid
        """
        existing = self.repository.load_rate_sheet_by_id(rate_sheet_id)
        if existing is None:
            raise RateSheetNotFound(rate_sheet_id)
        
        incoming = RateSheet(customer_id=customer_id, name=name,
                             warehouses=list(warehouses))
        merged = merge(existing, incoming, context)
        saved = self.repository.save_rate_sheet(merged)
        logger.info(
            "rate_sheet_updated",
            extra=log_extra(context, rate_sheet_id=saved.id, customer_id=customer_id)
        )
        return saved
    
    def find_rate_sheet(self, customer_id: str, customer_name: Optional[str],
                        warehouse_ids: Iterable[str],
                        context: Optional[RequestContext] = None) -> RateSheet:
        """Find the unique rate sheet covering every requested warehouse.
        
        Returns:
            The match restricted to the requested warehouses
        """
        return find_rate_sheet(
            self.repository, customer_id, customer_name, warehouse_ids, context
        )
    
    # Invoice templates
    
    def create_template(self, name: str, file_path: str,
                        is_active: bool = True) -> InvoiceTemplate:
        if not name or not name.strip():
            raise ValueError("name is required and cannot be empty")
        if not file_path or not file_path.strip():
            raise ValueError("file_path is required and cannot be empty")
        return self.repository.create_template(
            InvoiceTemplate(name=name, file_path=file_path, is_active=is_active)
        )
    
    def active_templates(self) -> List[InvoiceTemplate]:
        return self.repository.list_templates(active_only=True)
    
    def assign_template(self, customer_id: str, template_id: int,
                        today: Optional[date] = None) -> CustomerInvoiceTemplate:
        """Assign a template to a customer, effective from today."""
        return self.repository.assign_template(
            customer_id, template_id, effective_from=today or date.today()
        )
    
    def customer_template(self, customer_id: str,
                          today: Optional[date] = None) -> InvoiceTemplate:
        """Template the renderer should use for a customer."""
        return resolve_customer_template(
            customer_id,
            self.repository.customer_assignments(customer_id),
            self.repository.list_templates(),
            today or date.today()
        )
