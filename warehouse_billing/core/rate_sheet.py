"""
Rate sheet aggregate.

A rate sheet owns an ordered list of warehouses and each warehouse owns an
ordered list of charges. All mutation, including to nested charges, goes
through the RateSheet root so the structural invariants hold after every
change:

- no two warehouses share a warehouse_id
- no two charges within one warehouse share a (category, type, accessorial_type) key
- every charge passes validate_charge
"""

import copy
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .catalog import AccessorialType, Charge, ChargeCategory, validate_charge
from .errors import (
    ChargeNotFound,
    DuplicateCharge,
    DuplicateWarehouseId,
    MissingCustomerId,
    MissingName,
    MissingWarehouseId,
    NotFoundError,
)


@dataclass
class Warehouse:
    """Charges negotiated for one warehouse, keyed by warehouse_id."""
    warehouse_id: str
    charges: List[Charge] = field(default_factory=list)
    id: Optional[int] = field(default=None, compare=False)

    def find_charge(
        self,
        category: ChargeCategory,
        charge_type: Optional[str],
        accessorial_type: Optional[AccessorialType] = None,
    ) -> Optional[Charge]:
        """Return the charge matching category and type, or None.

        Matching is exact and case-sensitive on type. ACCESSORIAL charges
        also require accessorial_type equality; an ACCESSORIAL charge with a
        blank type matches any activity type carrying its accessorial code.
        """
        for charge in self.charges:
            if charge.category != category:
                continue
            if category == ChargeCategory.ACCESSORIAL:
                if accessorial_type is None or charge.accessorial_type != accessorial_type:
                    continue
                if charge.type and charge.type.strip() and charge.type != charge_type:
                    continue
                return charge
            if charge.type == charge_type:
                return charge
        return None


def validate_charges(warehouse_id: str, charges: Iterable[Charge]) -> List[Charge]:
    """Validate each charge and reject duplicate charge keys.

    Returns:
        The charges as a new list

    Raises:
        ValidationError: If any charge is invalid, a key repeats, or a
            blank-type accessorial shares its code with another charge
    """
    result = []
    seen: Set[tuple] = set()
    blank_codes: Set[AccessorialType] = set()
    typed_codes: Set[AccessorialType] = set()
    for charge in charges:
        validate_charge(charge)
        if charge.key in seen:
            raise DuplicateCharge(warehouse_id, charge.key)
        if charge.category == ChargeCategory.ACCESSORIAL:
            # A blank-type accessorial matches any activity type for its code,
            # so it cannot share the code with a typed one.
            code = charge.accessorial_type
            blank = not (charge.type or "").strip()
            if code in blank_codes or (blank and code in typed_codes):
                raise DuplicateCharge(warehouse_id, charge.key)
            (blank_codes if blank else typed_codes).add(code)
        seen.add(charge.key)
        result.append(charge)
    return result


def require_warehouse_id(warehouse_id: Optional[str]) -> str:
    if warehouse_id is None or not str(warehouse_id).strip():
        raise MissingWarehouseId("warehouse_id", "warehouseId is required for each warehouse")
    return warehouse_id


@dataclass
class RateSheet:
    """A customer's negotiated pricing contract across warehouses.

    ``id`` is assigned by storage and takes no part in equality.
    """
    customer_id: str
    name: str
    warehouses: List[Warehouse] = field(default_factory=list)
    id: Optional[int] = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        customer_id: str,
        name: str,
        warehouses: Iterable[Warehouse] = (),
    ) -> "RateSheet":
        """Build a new, validated aggregate with no storage identity."""
        rate_sheet = cls(customer_id=customer_id, name=name)
        rate_sheet.validate_header()
        for warehouse in warehouses:
            rate_sheet.add_warehouse(warehouse.warehouse_id, warehouse.charges)
        return rate_sheet

    def validate_header(self) -> None:
        if self.customer_id is None or not str(self.customer_id).strip():
            raise MissingCustomerId("customer_id", "customerId is required")
        if self.name is None or not str(self.name).strip():
            raise MissingName("name", "name is required")

    def validate(self) -> None:
        """Check every aggregate invariant on the current state."""
        self.validate_header()
        seen: Set[str] = set()
        for warehouse in self.warehouses:
            require_warehouse_id(warehouse.warehouse_id)
            if warehouse.warehouse_id in seen:
                raise DuplicateWarehouseId(warehouse.warehouse_id)
            seen.add(warehouse.warehouse_id)
            validate_charges(warehouse.warehouse_id, warehouse.charges)

    @property
    def warehouse_ids(self) -> List[str]:
        return [w.warehouse_id for w in self.warehouses]

    def warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        """Linear scan for the warehouse with an exact warehouse_id."""
        for warehouse in self.warehouses:
            if warehouse.warehouse_id == warehouse_id:
                return warehouse
        return None

    def add_warehouse(self, warehouse_id: str, charges: Iterable[Charge] = (),
                      id: Optional[int] = None) -> Warehouse:
        """Attach a new warehouse with validated charges.

        Raises:
            MissingWarehouseId: If warehouse_id is blank
            DuplicateWarehouseId: If the sheet already has this warehouse_id
            ValidationError: If any charge is invalid
        """
        require_warehouse_id(warehouse_id)
        if self.warehouse(warehouse_id) is not None:
            raise DuplicateWarehouseId(warehouse_id)
        warehouse = Warehouse(
            warehouse_id=warehouse_id,
            charges=validate_charges(warehouse_id, charges),
            id=id,
        )
        self.warehouses.append(warehouse)
        return warehouse

    def replace_charges(self, warehouse_id: str, charges: Iterable[Charge]) -> Warehouse:
        """Replace a warehouse's whole charge collection.

        The new charges are validated before the old ones are dropped.
        """
        warehouse = self.warehouse(warehouse_id)
        if warehouse is None:
            raise NotFoundError(f"Warehouse not found: {warehouse_id}")
        warehouse.charges = validate_charges(warehouse_id, charges)
        return warehouse

    def retain_warehouses(self, warehouse_ids: Iterable[str]) -> List[Warehouse]:
        """Drop every warehouse whose id is not in warehouse_ids.

        Returns:
            The removed warehouses (their charges go with them)
        """
        keep = set(warehouse_ids)
        removed = [w for w in self.warehouses if w.warehouse_id not in keep]
        self.warehouses = [w for w in self.warehouses if w.warehouse_id in keep]
        return removed

    def charges_for(
        self,
        warehouse_id: str,
        category: ChargeCategory,
        charge_type: Optional[str],
        accessorial_type: Optional[AccessorialType] = None,
    ) -> Charge:
        """Resolve the charge for a warehouse, category and type.

        Raises:
            ChargeNotFound: If the warehouse or a matching charge is absent
        """
        warehouse = self.warehouse(warehouse_id)
        charge = None
        if warehouse is not None:
            charge = warehouse.find_charge(category, charge_type, accessorial_type)
        if charge is None:
            raise ChargeNotFound(warehouse_id, category, charge_type)
        return charge

    def project(self, warehouse_ids: Iterable[str]) -> "RateSheet":
        """Copy of this sheet restricted to the given warehouses, order kept."""
        wanted = set(warehouse_ids)
        return RateSheet(
            customer_id=self.customer_id,
            name=self.name,
            warehouses=[
                copy.deepcopy(w) for w in self.warehouses
                if w.warehouse_id is not None and w.warehouse_id.strip() in wanted
            ],
            id=self.id,
        )
