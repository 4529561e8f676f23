from typing import List

from sqlalchemy.orm import Session

from retailpos.models.bill import Bill
from retailpos.repositories.bill_repo import BillRepository
from retailpos.schemas.bill_schema import BillCreate, BillCreated
from retailpos.utils.logging import get_logger
from retailpos.utils.transactions import smart_transaction

log = get_logger(__name__)


class BillServiceException(Exception):
    pass


class BillService:
    def __init__(self, db: Session):
        self.db = db
        self.bills = BillRepository(db)

    def create_bill(self, data: BillCreate) -> BillCreated:
        if not data.items:
            raise BillServiceException("A bill needs at least one item")
        with smart_transaction(self.db):
            if data.original_bill_id and not self.bills.get(data.original_bill_id):
                raise BillServiceException("Original bill not found")
            bill = self.bills.create(data)
            created = BillCreated(bill_id=bill.id, bill_number=bill.bill_number)
        log.info(
            "bill %s created (total=%.2f, is_return=%s)",
            created.bill_number,
            data.total_amount,
            data.is_return,
        )
        return created

    def get_bill(self, bill_id: int) -> Bill:
        bill = self.bills.get(bill_id)
        if not bill:
            raise BillServiceException("Bill not found")
        return bill

    def search_bills(self, query: str) -> List[Bill]:
        return self.bills.search(query)
