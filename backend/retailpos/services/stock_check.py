from typing import List, Sequence

from retailpos.schemas.return_schema import StockCheckResult, StockShortfall
from retailpos.services.collaborators import ProductCatalog
from retailpos.utils.logging import get_logger

log = get_logger(__name__)


class StockChecker:
    """
    Advisory stock check for exchange lines.

    Nothing is reserved: stock may still move between this check and the final
    write, which is why the return repository decrements stock conditionally.
    """

    def __init__(self, catalog: ProductCatalog):
        self.catalog = catalog

    async def check_stock(self, exchange_items: Sequence) -> StockCheckResult:
        shortfalls: List[StockShortfall] = []
        for item in exchange_items:
            if not item.product_id:
                # manually entered line, nothing to check against
                continue
            res = await self.catalog.get_by_id(item.product_id)
            if not res.ok:
                log.warning(
                    "stock lookup failed for %s (product_id=%s): %s; skipping",
                    item.product_name,
                    item.product_id,
                    res.message,
                )
                continue
            available = res.value.stock_quantity
            if item.quantity > available:
                shortfalls.append(
                    StockShortfall(
                        product_name=item.product_name,
                        requested=item.quantity,
                        available=available,
                    )
                )
        if shortfalls:
            log.info(
                "insufficient stock: %s",
                ", ".join(f"{s.product_name} ({s.requested}>{s.available})" for s in shortfalls),
            )
        return StockCheckResult(is_valid=not shortfalls, insufficient_stock=shortfalls)


def describe_shortfalls(result: StockCheckResult) -> str:
    items = ", ".join(
        f"{s.product_name} (Requested: {s.requested}, Available: {s.available})"
        for s in result.insufficient_stock
    )
    return f"Insufficient stock: {items}"
