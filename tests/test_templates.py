"""
Unit tests for invoice template resolution.
"""

from datetime import date

import pytest

from warehouse_billing.core.errors import TemplateNotFound
from warehouse_billing.core.templates import in_effect, resolve_customer_template
from warehouse_billing.storage.models import CustomerInvoiceTemplate, InvoiceTemplate

TODAY = date(2024, 6, 15)

STANDARD = InvoiceTemplate("Standard", "templates/standard.html", is_active=True, id=1)
DETAILED = InvoiceTemplate("Detailed", "templates/detailed.html", is_active=False, id=2)
RETAIL = InvoiceTemplate("Retail", "templates/retail.html", is_active=True, id=3)


class TestInEffect:
    """Test assignment date windows."""

    def test_open_ended(self):
        assert in_effect(CustomerInvoiceTemplate("C1", 1, date(2020, 1, 1)), TODAY)

    def test_ends_today_is_in_effect(self):
        assert in_effect(CustomerInvoiceTemplate("C1", 1, None, TODAY), TODAY)

    def test_expired(self):
        assert not in_effect(CustomerInvoiceTemplate("C1", 1, None, date(2024, 6, 14)), TODAY)


class TestResolveCustomerTemplate:
    """Test template choice for a customer."""

    def test_latest_assignment_wins(self):
        assignments = [
            CustomerInvoiceTemplate("C1", 1, date(2023, 1, 1)),
            CustomerInvoiceTemplate("C1", 2, date(2024, 1, 1)),
        ]
        result = resolve_customer_template("C1", assignments, [STANDARD, DETAILED], TODAY)
        assert result == DETAILED

    def test_undated_assignment_outranks_dated(self):
        assignments = [
            CustomerInvoiceTemplate("C1", 2, date(2024, 1, 1)),
            CustomerInvoiceTemplate("C1", 3, None),
            CustomerInvoiceTemplate("C1", 1, date(2023, 1, 1)),
        ]
        result = resolve_customer_template("C1", assignments, [STANDARD, DETAILED, RETAIL], TODAY)
        assert result == RETAIL

    def test_expired_assignment_falls_back_to_single_active(self):
        assignments = [CustomerInvoiceTemplate("C1", 2, date(2023, 1, 1), date(2023, 12, 31))]
        result = resolve_customer_template("C1", assignments, [STANDARD, DETAILED], TODAY)
        assert result == STANDARD

    def test_assignment_to_unknown_template(self):
        assignments = [CustomerInvoiceTemplate("C1", 99, date(2024, 1, 1))]
        with pytest.raises(TemplateNotFound) as exc_info:
            resolve_customer_template("C1", assignments, [STANDARD], TODAY)
        assert exc_info.value.template_id == 99

    def test_several_active_templates_without_assignment(self):
        with pytest.raises(TemplateNotFound) as exc_info:
            resolve_customer_template("C1", [], [STANDARD, RETAIL], TODAY)
        assert exc_info.value.customer_id == "C1"

    def test_no_templates(self):
        with pytest.raises(TemplateNotFound):
            resolve_customer_template("C1", [], [], TODAY)

    def test_other_customers_assignments_are_ignored(self):
        assignments = [CustomerInvoiceTemplate("C2", 3, date(2024, 1, 1))]
        result = resolve_customer_template("C1", assignments, [STANDARD, DETAILED], TODAY)
        assert result == STANDARD
