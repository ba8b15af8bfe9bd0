"""
Warehouse Billing.

Rates warehouse storage and logistics activities against negotiated
customer rate sheets and produces invoices.
"""
