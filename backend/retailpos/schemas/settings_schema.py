from typing import Optional

from pydantic import BaseModel


class ShopInfo(BaseModel):
    shop_name: str
    shop_address: Optional[str] = None
    shop_phone: Optional[str] = None
    receipt_footer: Optional[str] = None
    logo_url: Optional[str] = None
    bill_prefix: str = "INV"


class ShopInfoUpdate(BaseModel):
    shop_name: Optional[str] = None
    shop_address: Optional[str] = None
    shop_phone: Optional[str] = None
    receipt_footer: Optional[str] = None
    logo_url: Optional[str] = None
    bill_prefix: Optional[str] = None
