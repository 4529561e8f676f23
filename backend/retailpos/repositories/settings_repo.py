from typing import Dict, Optional

from sqlalchemy.orm import Session

from retailpos.config import settings
from retailpos.models.shop_setting import ShopSetting
from retailpos.schemas.settings_schema import ShopInfo


def default_shop_settings() -> Dict[str, Optional[str]]:
    return {
        "shop_name": settings.DEFAULT_SHOP_NAME,
        "shop_address": None,
        "shop_phone": None,
        "receipt_footer": "Thank you for shopping with us!",
        "logo_url": None,
        "bill_prefix": settings.DEFAULT_BILL_PREFIX,
        "bill_counter": "1",
    }


class SettingsRepository:
    """Key/value shop settings; missing keys fall back to configured defaults."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, key: str) -> Optional[ShopSetting]:
        return self.db.query(ShopSetting).filter(ShopSetting.key == key).first()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self._row(key)
        if row is not None:
            return row.value
        return default_shop_settings().get(key, default)

    def get_all(self) -> Dict[str, Optional[str]]:
        values = default_shop_settings()
        for row in self.db.query(ShopSetting).all():
            values[row.key] = row.value
        return values

    def set(self, key: str, value: Optional[str]) -> ShopSetting:
        row = self._row(key)
        if row is None:
            row = ShopSetting(key=key, value=value)
            self.db.add(row)
        else:
            row.value = value
        self.db.flush()
        return row

    def update(self, values: Dict[str, Optional[str]]):
        for key, value in values.items():
            self.set(key, value)

    def shop_info(self) -> ShopInfo:
        values = self.get_all()
        return ShopInfo(
            shop_name=values.get("shop_name") or settings.DEFAULT_SHOP_NAME,
            shop_address=values.get("shop_address"),
            shop_phone=values.get("shop_phone"),
            receipt_footer=values.get("receipt_footer"),
            logo_url=values.get("logo_url"),
            bill_prefix=values.get("bill_prefix") or settings.DEFAULT_BILL_PREFIX,
        )

    def next_bill_number(self) -> str:
        """Format ``<prefix>-<counter:04d>`` and advance the counter. Call inside a transaction."""
        prefix = self.get("bill_prefix") or settings.DEFAULT_BILL_PREFIX
        counter = int(self.get("bill_counter") or 1)
        self.set("bill_counter", str(counter + 1))
        return f"{prefix}-{counter:04d}"
