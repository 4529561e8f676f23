from typing import Optional
from pydantic import BaseModel
from pydantic import ConfigDict

class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    selling_price: float
    stock_quantity: int
    active: bool = True
