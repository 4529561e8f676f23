from sqlalchemy import Boolean, Column, Float, Integer, String

from retailpos.db import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False, index=True)
    product_code = Column(String(64), nullable=True, index=True)
    barcode = Column(String(64), unique=True, index=True, nullable=True)
    selling_price = Column(Float, nullable=False, default=0.0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Product id={self.id} name={self.name} stock={self.stock_quantity}>"
