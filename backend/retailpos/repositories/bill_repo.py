from typing import List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session, selectinload

from retailpos.models.bill import Bill, BillItem
from retailpos.repositories.settings_repo import SettingsRepository
from retailpos.schemas.bill_schema import BillCreate


class BillRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, bill_id: int) -> Optional[Bill]:
        return (
            self.db.query(Bill)
            .options(selectinload(Bill.items))
            .filter(Bill.id == bill_id)
            .first()
        )

    def search(self, q: str, limit: int = 50) -> List[Bill]:
        """Bills whose number, customer name, phone or total contains ``q``, newest first."""
        like = f"%{q.strip()}%"
        return (
            self.db.query(Bill)
            .options(selectinload(Bill.items))
            .filter(
                or_(
                    Bill.bill_number.ilike(like),
                    Bill.customer_name.ilike(like),
                    Bill.customer_phone.ilike(like),
                    cast(Bill.total_amount, String).ilike(like),
                )
            )
            .order_by(Bill.bill_date.desc(), Bill.id.desc())
            .limit(limit)
            .all()
        )

    def create(self, data: BillCreate) -> Bill:
        bill_number = SettingsRepository(self.db).next_bill_number()
        subtotal = data.subtotal if data.subtotal is not None else data.total_amount
        bill = Bill(
            bill_number=bill_number,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            subtotal=subtotal,
            total_amount=data.total_amount,
            payment_mode=data.payment_mode,
            notes=data.notes,
            is_return=data.is_return,
            original_bill_id=data.original_bill_id,
        )
        self.db.add(bill)
        self.db.flush()
        for it in data.items:
            self.db.add(
                BillItem(
                    bill_id=bill.id,
                    product_id=it.product_id,
                    product_name=it.product_name,
                    product_code=it.product_code,
                    barcode=it.barcode,
                    quantity=it.quantity,
                    unit_price=it.unit_price,
                    total_price=it.total_price,
                )
            )
        self.db.flush()
        return bill
