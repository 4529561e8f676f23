from datetime import datetime, timezone
from typing import Optional

from retailpos.schemas.return_schema import LineItem, ReturnSummary
from retailpos.schemas.settings_schema import ShopInfo
from retailpos.services.money import format_currency


def return_number(return_id: int) -> str:
    return f"RET-{return_id:06d}"


def _fmt_date(dt: Optional[datetime]) -> str:
    if dt is None:
        return "N/A"
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone().strftime("%d %b %Y, %I:%M %p")


def _lines(items) -> list:
    out = []
    for item in items:
        line = LineItem.model_validate(item).model_dump()
        line["display_total"] = format_currency(line["total_price"])
        out.append(line)
    return out


def build_return_receipt(rt, original_bill, shop_info: ShopInfo) -> dict:
    """
    Printable payload for a return receipt.

    ``rt`` and ``original_bill`` may be ORM rows or their pydantic models;
    ``original_bill`` may be None when the source bill has since been removed.
    """
    summary = ReturnSummary(
        total_return_value=rt.total_return_value,
        total_exchange_value=rt.total_exchange_value,
        balance_amount=rt.balance_amount,
        is_balance_positive=rt.balance_amount > 0,
    )
    return {
        "return_number": return_number(rt.id),
        "return_date": _fmt_date(rt.return_date),
        "original_bill_number": original_bill.bill_number if original_bill else "N/A",
        "original_bill_date": _fmt_date(original_bill.bill_date) if original_bill else "N/A",
        "customer_name": rt.customer_name or "Walk-in Customer",
        "customer_phone": rt.customer_phone,
        "return_reason": rt.return_reason,
        "notes": rt.notes,
        "return_items": _lines(rt.return_items),
        "exchange_items": _lines(rt.exchange_items),
        "summary": {
            **summary.model_dump(),
            "balance_type": summary.balance_type,
            "display_balance": format_currency(abs(summary.balance_amount)),
        },
        "shop_info": shop_info.model_dump(),
    }
