import math
from typing import List, Sequence

from retailpos.config import settings
from retailpos.schemas.return_schema import ValidationResult
from retailpos.services.money import format_amount, totals_match
from retailpos.utils.logging import get_logger

log = get_logger(__name__)


def _validate_lines(label: str, items: Sequence, tolerance: float, errors: List[str]):
    for index, item in enumerate(items, start=1):
        prefix = f"{label} item {index}"
        name = item.product_name or ""
        if not name.strip():
            errors.append(f"{prefix}: Product name is required")
        if item.quantity <= 0:
            errors.append(f"{prefix}: Quantity must be greater than 0")
        if not (math.isfinite(item.unit_price) and math.isfinite(item.total_price)):
            errors.append(f"{prefix}: Unit price and total price must be finite numbers")
            continue
        if item.unit_price < 0:
            errors.append(f"{prefix}: Unit price cannot be negative")
        if not totals_match(item.quantity, item.unit_price, item.total_price, tolerance):
            calculated = item.quantity * item.unit_price
            errors.append(
                f"{prefix}: Total price mismatch "
                f"(calculated: {format_amount(calculated)}, provided: {format_amount(item.total_price)})"
            )


def validate_return_data(
    original_bill_id,
    return_items: Sequence,
    exchange_items: Sequence,
    tolerance: float = None,
) -> ValidationResult:
    """
    Check a proposed return/exchange before it is submitted.

    Every applicable rule is evaluated and all messages are returned, so a
    caller can show the first one and log the rest.
    """
    if tolerance is None:
        tolerance = settings.PRICE_TOLERANCE
    errors: List[str] = []

    if (
        isinstance(original_bill_id, bool)
        or not isinstance(original_bill_id, int)
        or original_bill_id <= 0
    ):
        errors.append("Valid original bill ID is required")

    if not return_items:
        errors.append("At least one item must be selected for return")

    if not exchange_items:
        errors.append("At least one item must be selected for exchange")

    _validate_lines("Return", return_items or [], tolerance, errors)
    _validate_lines("Exchange", exchange_items or [], tolerance, errors)

    log.debug(
        "validated bill=%r returns=%d exchanges=%d errors=%s",
        original_bill_id,
        len(return_items or []),
        len(exchange_items or []),
        errors,
    )
    return ValidationResult(is_valid=not errors, errors=errors)
