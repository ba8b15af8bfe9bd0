"""
Rating engine.

Resolves a charge for each submitted activity and builds an invoice from
the resulting lines. The engine is a pure computation with these rules:
1. An unresolved rate sheet or an inverted period is a hard failure
2. An activity whose warehouse or charge cannot be resolved is skipped and
   reported as a diagnostic on the invoice (no exception)
3. Amounts are exact Decimal products, totals are summed left to right
4. Only FINAL invoices are handed to storage
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from .catalog import AccessorialType, ChargeCategory, parse_accessorial_type
from .context import RequestContext, log_extra
from .errors import ChargeNotFound, InvalidAccessorialType, InvalidPeriod, RateSheetNotFound
from .invoice import (
    DiagnosticKind,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    RatingDiagnostic,
)
from .rate_sheet import RateSheet
from warehouse_billing.storage.repository import InvoiceRepository, RateSheetRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Activity:
    """A billable event submitted for rating."""
    type: str
    category: ChargeCategory
    quantity: Decimal
    warehouse_id: str
    accessorial_type: Optional[AccessorialType] = None


@dataclass
class InvoiceRequest:
    """Activities for one warehouse over an inclusive billing period."""
    warehouse_id: str
    period_start: date
    period_end: date
    activities: List[Activity] = field(default_factory=list)


def resolve_accessorial_type(activity: Activity) -> Optional[AccessorialType]:
    """Accessorial code an activity bills against.

    Uses the explicit accessorial_type when given, otherwise the activity
    type when it names an AccessorialType member.
    """
    if activity.category != ChargeCategory.ACCESSORIAL:
        return None
    if activity.accessorial_type is not None:
        return activity.accessorial_type
    try:
        return parse_accessorial_type(activity.type)
    except InvalidAccessorialType:
        return None


def rate(
    rate_sheet: Optional[RateSheet],
    warehouse_id: str,
    period_start: date,
    period_end: date,
    activities: Sequence[Activity],
    preview: bool,
    context: Optional[RequestContext] = None,
) -> Invoice:
    """Rate activities against a rate sheet.

    Args:
        rate_sheet: Loaded rate sheet, None when the identity did not resolve
        warehouse_id: Warehouse recorded on the invoice header
        period_start: Billing period start (inclusive)
        period_end: Billing period end (inclusive)
        activities: Activities to rate, in order
        preview: True for a PREVIEW invoice, False for FINAL
        context: Request correlation for log records

    Returns:
        Invoice with one line per resolved activity and a diagnostic per
        skipped activity

    Raises:
        RateSheetNotFound: If rate_sheet is None
        InvalidPeriod: If period_end is before period_start
    """
    if rate_sheet is None:
        raise RateSheetNotFound(message="rateSheet not found")
    if period_end < period_start:
        raise InvalidPeriod(period_start, period_end)

    lines: List[InvoiceLine] = []
    diagnostics: List[RatingDiagnostic] = []

    for index, activity in enumerate(activities):
        if rate_sheet.warehouse(activity.warehouse_id) is None:
            diagnostics.append(_diagnostic(
                DiagnosticKind.UNRESOLVED_WAREHOUSE, index, activity,
                f"No warehouse {activity.warehouse_id} in rate sheet {rate_sheet.id}",
                context,
            ))
            continue

        try:
            charge = rate_sheet.charges_for(
                activity.warehouse_id, activity.category, activity.type,
                resolve_accessorial_type(activity),
            )
        except ChargeNotFound:
            diagnostics.append(_diagnostic(
                DiagnosticKind.UNRESOLVED_CHARGE, index, activity,
                f"No {activity.category.value} charge for type {activity.type} "
                f"in warehouse {activity.warehouse_id}",
                context,
            ))
            continue

        lines.append(InvoiceLine(
            description=activity.type,
            quantity=activity.quantity,
            rate=charge.rate,
            amount=activity.quantity * charge.rate,
        ))

    total = Decimal("0")
    for line in lines:
        total += line.amount

    invoice = Invoice(
        rate_sheet_id=rate_sheet.id,
        customer_id=rate_sheet.customer_id,
        warehouse_id=warehouse_id,
        period_start=period_start,
        period_end=period_end,
        status=InvoiceStatus.PREVIEW if preview else InvoiceStatus.FINAL,
        lines=tuple(lines),
        total_amount=total,
        diagnostics=tuple(diagnostics),
    )
    logger.info(
        "invoice_rated",
        extra=log_extra(
            context,
            rate_sheet_id=rate_sheet.id,
            warehouse_id=warehouse_id,
            status=invoice.status.value,
            line_count=len(lines),
            skipped_count=len(diagnostics),
            total_amount=str(total),
        ),
    )
    return invoice


def _diagnostic(
    kind: DiagnosticKind,
    index: int,
    activity: Activity,
    message: str,
    context: Optional[RequestContext],
) -> RatingDiagnostic:
    logger.warning(
        "activity_unresolved",
        extra=log_extra(
            context,
            diagnostic=kind.value,
            activity_index=index,
            activity_type=activity.type,
            warehouse_id=activity.warehouse_id,
        ),
    )
    return RatingDiagnostic(
        kind=kind,
        activity_index=index,
        activity_type=activity.type,
        warehouse_id=activity.warehouse_id,
        message=message,
    )


def generate_invoice(
    rate_sheets: RateSheetRepository,
    invoices: InvoiceRepository,
    rate_sheet_id: int,
    request: InvoiceRequest,
    preview: bool,
    context: Optional[RequestContext] = None,
) -> Invoice:
    """Load the rate sheet, rate the request and persist FINAL invoices.

    Raises:
        RateSheetNotFound: If no rate sheet has this id
        InvalidPeriod: If the request period is inverted
    """
    rate_sheet = rate_sheets.load_rate_sheet_by_id(rate_sheet_id)
    if rate_sheet is None:
        raise RateSheetNotFound(rate_sheet_id, f"rateSheetId not found: {rate_sheet_id}")

    invoice = rate(
        rate_sheet,
        request.warehouse_id,
        request.period_start,
        request.period_end,
        request.activities,
        preview,
        context,
    )
    if invoice.is_preview:
        return invoice

    saved = invoices.save_invoice(invoice)
    logger.info(
        "invoice_finalized",
        extra=log_extra(context, invoice_id=saved.id, rate_sheet_id=rate_sheet_id),
    )
    return saved

