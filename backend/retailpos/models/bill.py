from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from retailpos.db import Base


class Bill(Base):
    __tablename__ = "bills"
    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True, index=True)
    bill_date = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    subtotal = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    payment_mode = Column(String(16), nullable=False, default="CASH")  # CASH, EXCHANGE
    notes = Column(Text, nullable=True)
    # settlement records produced by a return/exchange; never a return source
    is_return = Column(Boolean, nullable=False, default=False)
    original_bill_id = Column(Integer, ForeignKey("bills.id"), nullable=True)

    items = relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItem.id",
    )


class BillItem(Base):
    __tablename__ = "bill_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    product_name = Column(String(256), nullable=False)
    product_code = Column(String(64), nullable=True)
    barcode = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    bill = relationship("Bill", back_populates="items")
