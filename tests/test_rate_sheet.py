"""
Unit tests for the rate sheet aggregate.

Tests warehouse uniqueness, charge resolution and projections.
"""

from decimal import Decimal

import pytest

from warehouse_billing.core.catalog import AccessorialType, Charge, ChargeCategory
from warehouse_billing.core.errors import (
    ChargeNotFound,
    DuplicateCharge,
    DuplicateWarehouseId,
    InvalidRate,
    MissingCustomerId,
    MissingName,
    MissingType,
    MissingWarehouseId,
)
from warehouse_billing.core.rate_sheet import RateSheet, Warehouse

PALLET = Charge(ChargeCategory.STORAGE, "PALLET", Decimal("2.50"), "pallet/day")
CASE_PICK = Charge(ChargeCategory.OUTBOUND, "CASE_PICK", Decimal("0.35"), "case")
RUSH = Charge(ChargeCategory.ACCESSORIAL, None, Decimal("75.00"), "order",
              AccessorialType.RUSH_ORDER)
LIFTGATE = Charge(ChargeCategory.ACCESSORIAL, "LIFTGATE", Decimal("45.00"), "stop",
                  AccessorialType.LIFTGATE_SERVICE)


def build_sheet() -> RateSheet:
    return RateSheet.create("CUST-1", "Acme Foods", [
        Warehouse("WH01", [PALLET, CASE_PICK, RUSH, LIFTGATE]),
        Warehouse("WH02", [PALLET]),
    ])


class TestCreate:
    """Test aggregate construction."""

    def test_create_keeps_warehouse_order(self):
        sheet = build_sheet()
        assert sheet.warehouse_ids == ["WH01", "WH02"]
        assert sheet.id is None

    def test_blank_customer_id_fails(self):
        with pytest.raises(MissingCustomerId):
            RateSheet.create(" ", "Acme Foods")

    def test_blank_name_fails(self):
        with pytest.raises(MissingName):
            RateSheet.create("CUST-1", None)

    def test_invalid_charge_fails(self):
        bad = Charge(ChargeCategory.LABOR, "", Decimal("30"), "hour")
        with pytest.raises(MissingType):
            RateSheet.create("CUST-1", "Acme Foods", [Warehouse("WH01", [bad])])


class TestAddWarehouse:
    """Test warehouse uniqueness."""

    def test_duplicate_warehouse_id_fails(self):
        sheet = build_sheet()
        with pytest.raises(DuplicateWarehouseId) as exc_info:
            sheet.add_warehouse("WH01", [PALLET])
        assert exc_info.value.warehouse_id == "WH01"
        assert sheet.warehouse_ids == ["WH01", "WH02"]

    def test_blank_warehouse_id_fails(self):
        with pytest.raises(MissingWarehouseId):
            build_sheet().add_warehouse("", [])

    def test_duplicate_charge_key_fails(self):
        sheet = build_sheet()
        with pytest.raises(DuplicateCharge):
            sheet.add_warehouse("WH03", [PALLET, PALLET])

    @pytest.mark.parametrize("first, second", [
        (RUSH, Charge(ChargeCategory.ACCESSORIAL, "RUSH_ORDER", Decimal("100.00"), "order",
                      AccessorialType.RUSH_ORDER)),
        (Charge(ChargeCategory.ACCESSORIAL, "Rush fee", Decimal("100.00"), "order",
                AccessorialType.RUSH_ORDER), RUSH),
    ])
    def test_blank_accessorial_cannot_share_code_with_typed(self, first, second):
        sheet = build_sheet()
        with pytest.raises(DuplicateCharge):
            sheet.add_warehouse("WH03", [first, second])
        assert sheet.warehouse_ids == ["WH01", "WH02"]

    def test_typed_accessorials_may_share_code(self):
        sheet = build_sheet()
        liftgate_night = Charge(ChargeCategory.ACCESSORIAL, "LIFTGATE_NIGHT", Decimal("60.00"),
                                "stop", AccessorialType.LIFTGATE_SERVICE)
        warehouse = sheet.add_warehouse("WH03", [LIFTGATE, liftgate_night])
        assert len(warehouse.charges) == 2

    def test_same_type_in_different_categories_is_allowed(self):
        sheet = build_sheet()
        inbound_pallet = Charge(ChargeCategory.INBOUND, "PALLET", Decimal("4.00"), "pallet")
        warehouse = sheet.add_warehouse("WH03", [PALLET, inbound_pallet])
        assert len(warehouse.charges) == 2


class TestChargesFor:
    """Test charge resolution."""

    def test_resolves_exact_match(self):
        charge = build_sheet().charges_for("WH01", ChargeCategory.STORAGE, "PALLET")
        assert charge.rate == Decimal("2.50")

    def test_type_match_is_case_sensitive(self):
        with pytest.raises(ChargeNotFound):
            build_sheet().charges_for("WH01", ChargeCategory.STORAGE, "pallet")

    def test_category_must_match(self):
        with pytest.raises(ChargeNotFound):
            build_sheet().charges_for("WH01", ChargeCategory.INBOUND, "PALLET")

    def test_unknown_warehouse(self):
        with pytest.raises(ChargeNotFound) as exc_info:
            build_sheet().charges_for("WH99", ChargeCategory.STORAGE, "PALLET")
        assert exc_info.value.warehouse_id == "WH99"

    def test_accessorial_requires_code(self):
        sheet = build_sheet()
        with pytest.raises(ChargeNotFound):
            sheet.charges_for("WH01", ChargeCategory.ACCESSORIAL, "RUSH_ORDER")
        charge = sheet.charges_for(
            "WH01", ChargeCategory.ACCESSORIAL, "RUSH_ORDER", AccessorialType.RUSH_ORDER
        )
        assert charge == RUSH

    def test_accessorial_with_type_must_match_type(self):
        sheet = build_sheet()
        with pytest.raises(ChargeNotFound):
            sheet.charges_for(
                "WH01", ChargeCategory.ACCESSORIAL, "TAILGATE", AccessorialType.LIFTGATE_SERVICE
            )
        assert sheet.charges_for(
            "WH01", ChargeCategory.ACCESSORIAL, "LIFTGATE", AccessorialType.LIFTGATE_SERVICE
        ) == LIFTGATE


class TestMutation:
    """Test charge replacement and warehouse pruning."""

    def test_replace_charges_validates_first(self):
        sheet = build_sheet()
        bad = Charge(ChargeCategory.STORAGE, "PALLET", Decimal("0"), "pallet/day")
        with pytest.raises(InvalidRate):
            sheet.replace_charges("WH02", [bad])
        assert sheet.warehouse("WH02").charges == [PALLET]

    def test_replace_charges(self):
        sheet = build_sheet()
        sheet.replace_charges("WH02", [CASE_PICK])
        assert sheet.warehouse("WH02").charges == [CASE_PICK]

    def test_retain_warehouses(self):
        sheet = build_sheet()
        removed = sheet.retain_warehouses({"WH02"})
        assert [w.warehouse_id for w in removed] == ["WH01"]
        assert sheet.warehouse_ids == ["WH02"]


class TestProject:
    """Test restricted views."""

    def test_project_keeps_only_requested(self):
        sheet = build_sheet()
        sheet.id = 7
        view = sheet.project({"WH02"})
        assert view.warehouse_ids == ["WH02"]
        assert view.id == 7
        assert sheet.warehouse_ids == ["WH01", "WH02"]

    def test_project_is_a_copy(self):
        sheet = build_sheet()
        view = sheet.project({"WH01"})
        view.warehouse("WH01").charges.clear()
        assert len(sheet.warehouse("WH01").charges) == 4
