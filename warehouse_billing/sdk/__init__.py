"""
SDK for warehouse billing.

Provides programmatic access to invoice rating and rate sheet maintenance.
"""

from .billing_client import BillingClient

__all__ = ["BillingClient"]
