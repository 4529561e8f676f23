import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from retailpos.db import Base


class ReturnStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# the only legal status moves; everything else is rejected by the repository
ALLOWED_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.COMPLETED, ReturnStatus.CANCELLED},
    ReturnStatus.COMPLETED: set(),
    ReturnStatus.CANCELLED: set(),
}


class ReturnTransaction(Base):
    __tablename__ = "return_transactions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    original_bill_id = Column(
        Integer, ForeignKey("bills.id"), nullable=False, index=True
    )
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    return_date = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    return_reason = Column(Text, nullable=True)
    total_return_value = Column(Float, nullable=False, default=0.0)
    total_exchange_value = Column(Float, nullable=False, default=0.0)
    balance_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(16), nullable=False, default=ReturnStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    return_items = relationship(
        "ReturnItem",
        back_populates="return_transaction",
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
    )
    exchange_items = relationship(
        "ExchangeItem",
        back_populates="return_transaction",
        cascade="all, delete-orphan",
        order_by="ExchangeItem.id",
    )
    original_bill = relationship("Bill", foreign_keys=[original_bill_id])


class _LineColumns:
    """Shared line shape: optional live product reference plus an immutable snapshot."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_name = Column(String(256), nullable=False)
    product_code = Column(String(64), nullable=True)
    barcode = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)


class ReturnItem(_LineColumns, Base):
    __tablename__ = "return_items"
    return_id = Column(
        Integer, ForeignKey("return_transactions.id"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    return_transaction = relationship("ReturnTransaction", back_populates="return_items")


class ExchangeItem(_LineColumns, Base):
    __tablename__ = "exchange_items"
    return_id = Column(
        Integer, ForeignKey("return_transactions.id"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    return_transaction = relationship(
        "ReturnTransaction", back_populates="exchange_items"
    )
