"""
Unit tests for rate sheet merge.

Tests warehouse add/replace/remove by business key and failure atomicity.
"""

import copy
from decimal import Decimal

import pytest

from warehouse_billing.core.catalog import Charge, ChargeCategory
from warehouse_billing.core.errors import (
    DuplicateWarehouseId,
    InvalidRate,
    MissingName,
    MissingWarehouseId,
)
from warehouse_billing.core.merge import merge
from warehouse_billing.core.rate_sheet import RateSheet, Warehouse


def charge(type_, rate, category=ChargeCategory.STORAGE, id=None):
    return Charge(category, type_, Decimal(rate), "each", id=id)


def stored_sheet() -> RateSheet:
    """A sheet as it comes back from storage, ids included."""
    sheet = RateSheet(
        customer_id="CUST-1",
        name="Acme Foods",
        warehouses=[
            Warehouse("A", [charge("PALLET", "2.50", id=11)], id=1),
            Warehouse("B", [charge("PALLET", "3.00", id=12),
                            charge("BIN", "1.00", id=13)], id=2),
        ],
        id=100,
    )
    return sheet


class TestMerge:
    """Test the add/replace/remove reconciliation."""

    def test_identical_payload_round_trips(self):
        existing = stored_sheet()
        incoming = copy.deepcopy(existing)
        merged = merge(existing, incoming)
        assert merged == existing
        assert merged.id == 100

    def test_add_replace_remove(self):
        existing = stored_sheet()
        incoming = RateSheet(
            customer_id="CUST-1",
            name="Acme Foods",
            warehouses=[
                Warehouse("B", [charge("PALLET", "3.25")]),
                Warehouse("C", [charge("FLOOR", "0.80")]),
            ],
        )
        merged = merge(existing, incoming)

        assert merged.warehouse_ids == ["B", "C"]
        assert merged.warehouse("B").charges == [charge("PALLET", "3.25")]
        # Retained warehouse keeps its identity, new one has none yet
        assert merged.warehouse("B").id == 2
        assert merged.warehouse("C").id is None

    def test_header_is_overwritten(self):
        incoming = RateSheet("CUST-2", "Acme Frozen", [Warehouse("A", [charge("PALLET", "2.50")])])
        merged = merge(stored_sheet(), incoming)
        assert merged.customer_id == "CUST-2"
        assert merged.name == "Acme Frozen"

    def test_client_supplied_ids_are_dropped(self):
        incoming = RateSheet("CUST-1", "Acme Foods", [
            Warehouse("A", [charge("PALLET", "2.75", id=999)]),
        ])
        merged = merge(stored_sheet(), incoming)
        assert merged.warehouse("A").charges[0].id is None

    def test_empty_payload_removes_everything(self):
        merged = merge(stored_sheet(), RateSheet("CUST-1", "Acme Foods", []))
        assert merged.warehouses == []

    def test_existing_is_not_modified(self):
        existing = stored_sheet()
        snapshot = copy.deepcopy(existing)
        merge(existing, RateSheet("CUST-1", "Renamed", [Warehouse("C", [])]))
        assert existing == snapshot
        assert existing.name == "Acme Foods"


class TestMergeFailures:
    """Test that invalid payloads fail without side effects."""

    def test_duplicate_incoming_key(self):
        existing = stored_sheet()
        snapshot = copy.deepcopy(existing)
        incoming = RateSheet("CUST-1", "Acme Foods", [
            Warehouse("A", [charge("PALLET", "2.50")]),
            Warehouse("A", [charge("PALLET", "2.60")]),
        ])
        with pytest.raises(DuplicateWarehouseId):
            merge(existing, incoming)
        assert existing == snapshot

    def test_missing_incoming_key(self):
        incoming = RateSheet("CUST-1", "Acme Foods", [Warehouse(None, [])])
        with pytest.raises(MissingWarehouseId):
            merge(stored_sheet(), incoming)

    def test_invalid_charge_leaves_existing_untouched(self):
        existing = stored_sheet()
        snapshot = copy.deepcopy(existing)
        incoming = RateSheet("CUST-1", "Acme Foods", [
            Warehouse("A", [charge("PALLET", "2.75")]),
            Warehouse("B", [charge("PALLET", "-1")]),
        ])
        with pytest.raises(InvalidRate):
            merge(existing, incoming)
        assert existing == snapshot
        assert existing.warehouse("A").charges[0].rate == Decimal("2.50")

    def test_blank_name(self):
        with pytest.raises(MissingName):
            merge(stored_sheet(), RateSheet("CUST-1", " ", []))
