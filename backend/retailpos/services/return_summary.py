from typing import Sequence

from retailpos.schemas.return_schema import ReturnSummary
from retailpos.services.money import sum_totals


def calculate_summary(return_items: Sequence, exchange_items: Sequence) -> ReturnSummary:
    """
    Settlement for a return/exchange pair.

    ``balance_amount`` is exchange minus return: positive means the customer
    pays the difference, negative means the customer gets change. A zero
    balance is not positive.
    """
    total_return_value = sum_totals(return_items)
    total_exchange_value = sum_totals(exchange_items)
    balance_amount = total_exchange_value - total_return_value
    return ReturnSummary(
        total_return_value=total_return_value,
        total_exchange_value=total_exchange_value,
        balance_amount=balance_amount,
        is_balance_positive=balance_amount > 0,
    )
