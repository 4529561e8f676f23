from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BillItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: Optional[int] = None
    product_name: str
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class BillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    bill_number: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    bill_date: datetime
    subtotal: float = 0.0
    total_amount: float
    payment_mode: str = "CASH"
    notes: Optional[str] = None
    is_return: bool = False
    original_bill_id: Optional[int] = None
    items: List[BillItemOut] = Field(default_factory=list)


class BillItemIn(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class BillCreate(BaseModel):
    """Bill payload; also the shape of the exchange record written after a return."""

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Optional[float] = None
    total_amount: float
    payment_mode: str = "CASH"
    notes: Optional[str] = None
    is_return: bool = False
    original_bill_id: Optional[int] = None
    items: List[BillItemIn] = Field(default_factory=list)


class BillCreated(BaseModel):
    bill_id: int
    bill_number: str
