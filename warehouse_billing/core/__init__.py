"""
Core modules for warehouse billing.

This package contains the rating core: the rate catalog, the rate sheet
aggregate, invoice rating, rate sheet merging and lookup.
"""
