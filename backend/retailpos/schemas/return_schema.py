from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from retailpos.models.return_transaction import ReturnStatus


class LineItem(BaseModel):
    """
    One return or exchange line as it travels on the wire.

    Quantity and price rules are checked by ``validate_return_data``, not here.
    """

    model_config = ConfigDict(from_attributes=True)
    product_id: Optional[int] = None
    product_name: str = ""
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class ReturnProcessData(BaseModel):
    original_bill_id: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    return_reason: Optional[str] = None
    notes: Optional[str] = None
    return_items: List[LineItem] = Field(default_factory=list)
    exchange_items: List[LineItem] = Field(default_factory=list)


class ReturnSummary(BaseModel):
    total_return_value: float = 0.0
    total_exchange_value: float = 0.0
    balance_amount: float = 0.0
    is_balance_positive: bool = False

    @property
    def balance_type(self) -> str:
        return "Customer Pays" if self.is_balance_positive else "Customer Gets Change"


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class StockShortfall(BaseModel):
    product_name: str
    requested: int
    available: int


class StockCheckResult(BaseModel):
    is_valid: bool
    insufficient_stock: List[StockShortfall] = Field(default_factory=list)


class ReturnLineOut(LineItem):
    id: int


class ReturnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    original_bill_id: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    return_date: datetime
    return_reason: Optional[str] = None
    total_return_value: float
    total_exchange_value: float
    balance_amount: float
    status: ReturnStatus
    notes: Optional[str] = None
    return_items: List[ReturnLineOut] = Field(default_factory=list)
    exchange_items: List[ReturnLineOut] = Field(default_factory=list)


class ReturnCreated(BaseModel):
    return_id: int
    total_return_value: float
    total_exchange_value: float
    balance_amount: float


class ReturnFilters(BaseModel):
    search_query: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[ReturnStatus] = None
    customer_name: Optional[str] = None


class ReturnStats(BaseModel):
    today_returns: int = 0
    pending_returns: int = 0
    total_value: float = 0.0
    avg_return_value: float = 0.0
    recent_returns: List[ReturnOut] = Field(default_factory=list)


class FilteredReturnSummary(BaseModel):
    total: int = 0
    pending: int = 0
    completed: int = 0
    total_value: float = 0.0
    exchange_value: float = 0.0


class StatusUpdateIn(BaseModel):
    status: str
