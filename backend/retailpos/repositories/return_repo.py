from datetime import datetime, time, timezone
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from retailpos.models.return_transaction import (
    ExchangeItem,
    ReturnItem,
    ReturnStatus,
    ReturnTransaction,
)
from retailpos.schemas.return_schema import LineItem, ReturnFilters


def _local_day_bound(d, end: bool) -> datetime:
    # return_date is stored as naive UTC; filters are local calendar days
    local = datetime.combine(d, time.max if end else time.min).astimezone()
    return local.astimezone(timezone.utc).replace(tzinfo=None)


class ReturnRepository:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(ReturnTransaction).options(
            selectinload(ReturnTransaction.return_items),
            selectinload(ReturnTransaction.exchange_items),
        )

    def get(self, return_id: int) -> Optional[ReturnTransaction]:
        return self._query().filter(ReturnTransaction.id == return_id).first()

    def get_for_update(self, return_id: int) -> Optional[ReturnTransaction]:
        # SQLite leaves FOR UPDATE out of the statement
        return (
            self.db.query(ReturnTransaction)
            .filter(ReturnTransaction.id == return_id)
            .with_for_update()
            .first()
        )

    def list(
        self, filters: Optional[ReturnFilters] = None, limit: Optional[int] = 100
    ) -> List[ReturnTransaction]:
        query = self._query()
        if filters:
            if filters.date_from:
                query = query.filter(
                    ReturnTransaction.return_date >= _local_day_bound(filters.date_from, end=False)
                )
            if filters.date_to:
                query = query.filter(
                    ReturnTransaction.return_date <= _local_day_bound(filters.date_to, end=True)
                )
            if filters.status:
                query = query.filter(ReturnTransaction.status == filters.status.value)
        query = query.order_by(ReturnTransaction.return_date.desc(), ReturnTransaction.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def add(
        self,
        original_bill_id: int,
        return_lines: List[LineItem],
        exchange_lines: List[LineItem],
        totals: dict,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        return_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ReturnTransaction:
        rt = ReturnTransaction(
            original_bill_id=original_bill_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            return_reason=return_reason,
            notes=notes,
            status=ReturnStatus.PENDING.value,
            total_return_value=totals["total_return_value"],
            total_exchange_value=totals["total_exchange_value"],
            balance_amount=totals["balance_amount"],
        )
        self.db.add(rt)
        self.db.flush()
        for line in return_lines:
            self.db.add(ReturnItem(return_id=rt.id, **line.model_dump()))
        for line in exchange_lines:
            self.db.add(ExchangeItem(return_id=rt.id, **line.model_dump()))
        self.db.flush()
        return rt
