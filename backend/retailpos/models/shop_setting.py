from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from retailpos.db import Base


class ShopSetting(Base):
    __tablename__ = "shop_settings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(64), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
