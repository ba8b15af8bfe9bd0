"""
Invoice template resolution.

Chooses which rendering template applies to a customer. Rendering itself
happens downstream.
"""

from datetime import date
from typing import List, Sequence

from .errors import TemplateNotFound
from warehouse_billing.storage.models import CustomerInvoiceTemplate, InvoiceTemplate


def in_effect(assignment: CustomerInvoiceTemplate, today: date) -> bool:
    """An assignment applies until its effective_to date, inclusive."""
    return assignment.effective_to is None or assignment.effective_to >= today


def resolve_customer_template(
    customer_id: str,
    assignments: Sequence[CustomerInvoiceTemplate],
    templates: Sequence[InvoiceTemplate],
    today: date,
) -> InvoiceTemplate:
    """Pick the template for a customer.

    Resolution order:
    1. The customer's in-effect assignment with the latest effective_from,
       an undated assignment ranking above every dated one
    2. The single active template, when exactly one is active
    3. Otherwise fail

    Args:
        customer_id: Customer to resolve for
        assignments: Assignments stored for the customer
        templates: All known templates
        today: Date assignments are evaluated against

    Raises:
        TemplateNotFound: If no template can be chosen
    """
    by_id = {t.id: t for t in templates}
    current: List[CustomerInvoiceTemplate] = [
        a for a in assignments if a.customer_id == customer_id and in_effect(a, today)
    ]
    if current:
        current.sort(key=lambda a: (a.effective_from is None, a.effective_from or date.min),
                     reverse=True)
        template = by_id.get(current[0].template_id)
        if template is None:
            raise TemplateNotFound(
                f"Template mapping is invalid for customer: {customer_id}",
                customer_id=customer_id,
                template_id=current[0].template_id,
            )
        return template

    active = [t for t in templates if t.is_active]
    if len(active) == 1:
        return active[0]

    raise TemplateNotFound(
        f"No invoice template configured for customer: {customer_id}. "
        "Assign a template to the customer or configure a single active default template.",
        customer_id=customer_id,
    )
