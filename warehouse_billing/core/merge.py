"""
Rate sheet merge.

Reconciles an update payload against a stored rate sheet by warehouse
business key. The incoming warehouse list is the full desired state:

- header fields are overwritten (last writer wins)
- an incoming warehouse with a new key is attached with fresh identity
- an incoming warehouse with an existing key replaces that warehouse's
  entire charge collection; the key itself never changes
- existing warehouses absent from the payload are removed with their charges

The stored aggregate is never modified in place: the merge works on a copy,
so a validation failure half way through leaves ``existing`` untouched.
"""

import copy
import dataclasses
import logging
from typing import Dict, List, Optional, Set

from .context import RequestContext, log_extra
from .errors import DuplicateWarehouseId
from .rate_sheet import RateSheet, Warehouse, require_warehouse_id

logger = logging.getLogger(__name__)


def merge(
    existing: RateSheet,
    incoming: RateSheet,
    context: Optional[RequestContext] = None,
) -> RateSheet:
    """Apply an update payload to a stored rate sheet.

    Args:
        existing: Aggregate as loaded from storage
        incoming: Update payload (not validated yet)
        context: Request correlation for log records

    Returns:
        The merged aggregate, carrying existing's identity, ready to save

    Raises:
        MissingCustomerId, MissingName: If the incoming header is blank
        MissingWarehouseId: If an incoming warehouse has no key
        DuplicateWarehouseId: If a key repeats within the payload
        ValidationError: If any incoming charge is invalid
    """
    incoming.validate_header()
    result = copy.deepcopy(existing)

    result.customer_id = incoming.customer_id
    result.name = incoming.name

    existing_by_key: Dict[str, Warehouse] = {}
    for warehouse in result.warehouses:
        if warehouse.warehouse_id is not None:
            existing_by_key.setdefault(warehouse.warehouse_id, warehouse)

    seen: Set[str] = set()
    added: List[str] = []
    replaced: List[str] = []
    for warehouse in incoming.warehouses:
        key = require_warehouse_id(warehouse.warehouse_id)
        if key in seen:
            raise DuplicateWarehouseId(key)
        seen.add(key)

        charges = [dataclasses.replace(c, id=None) for c in warehouse.charges]
        if key not in existing_by_key:
            # Client-supplied identity is discarded; storage assigns a new one
            result.add_warehouse(key, charges)
            added.append(key)
        else:
            result.replace_charges(key, charges)
            replaced.append(key)

    removed = [w.warehouse_id for w in result.retain_warehouses(seen)]

    logger.info(
        "rate_sheet_merged",
        extra=log_extra(
            context,
            rate_sheet_id=existing.id,
            warehouses_added=added,
            warehouses_replaced=replaced,
            warehouses_removed=removed,
        ),
    )
    return result
