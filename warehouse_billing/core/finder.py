"""
Rate sheet lookup by customer and warehouse set.
"""

import logging
from typing import Iterable, Optional, Set

from .context import RequestContext, log_extra
from .errors import AmbiguousRateSheet, EmptyWarehouseSet, InvalidArgument, RateSheetNotFound
from .rate_sheet import RateSheet
from warehouse_billing.storage.repository import RateSheetRepository

logger = logging.getLogger(__name__)


def normalize_warehouse_ids(warehouse_ids: Optional[Iterable[Optional[str]]]) -> Set[str]:
    """Trim, drop blanks and deduplicate requested warehouse ids.

    Raises:
        EmptyWarehouseSet: If nothing usable remains
    """
    ids = {w.strip() for w in (warehouse_ids or []) if w is not None and w.strip()}
    if not ids:
        raise EmptyWarehouseSet()
    return ids


def covers(rate_sheet: RateSheet, customer_id: str, customer_name: Optional[str],
           warehouse_ids: Set[str]) -> bool:
    """True if the sheet belongs to the customer and holds every requested warehouse."""
    if rate_sheet.customer_id != customer_id:
        return False
    if customer_name and rate_sheet.name != customer_name:
        return False
    present = {w.warehouse_id.strip() for w in rate_sheet.warehouses if w.warehouse_id}
    return warehouse_ids <= present


def find_rate_sheet(
    repository: RateSheetRepository,
    customer_id: str,
    customer_name: Optional[str],
    warehouse_ids: Iterable[Optional[str]],
    context: Optional[RequestContext] = None,
) -> RateSheet:
    """Find the one rate sheet covering a customer across a warehouse set.

    A candidate matches when it belongs to customer_id, contains every
    requested warehouse (extra warehouses are allowed) and, when a non-blank
    customer_name is given, has exactly that name.

    Returns:
        Projection of the match holding only the requested warehouses

    Raises:
        InvalidArgument: If customer_id is blank
        EmptyWarehouseSet: If no usable warehouse id was given
        RateSheetNotFound: If nothing matches
        AmbiguousRateSheet: If more than one sheet matches
    """
    if customer_id is None or not customer_id.strip():
        raise InvalidArgument("customerId is required")
    ids = normalize_warehouse_ids(warehouse_ids)
    name = customer_name.strip() if customer_name and customer_name.strip() else None

    candidates = repository.load_rate_sheets_by_customer_and_warehouse_set(
        customer_id, name, ids
    )
    matches = [c for c in candidates if covers(c, customer_id, name, ids)]

    if not matches:
        raise RateSheetNotFound(
            message=f"RateSheet not found for CustomerId={customer_id}, "
                    f"CustomerName={customer_name}, WarehouseIds={sorted(ids)}"
        )
    if len(matches) > 1:
        logger.warning(
            "rate_sheet_ambiguous",
            extra=log_extra(
                context,
                customer_id=customer_id,
                match_count=len(matches),
                rate_sheet_ids=[m.id for m in matches],
            ),
        )
        raise AmbiguousRateSheet(customer_id, customer_name, ids, len(matches))

    match = matches[0]
    logger.info(
        "rate_sheet_found",
        extra=log_extra(context, rate_sheet_id=match.id, customer_id=customer_id),
    )
    return match.project(ids)
