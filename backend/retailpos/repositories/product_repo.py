from typing import List, Optional, Tuple

from retailpos.models.product import Product
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_by_barcode(self, code: str) -> Optional[Product]:
        return (
            self.db.query(Product)
            .filter(Product.barcode == code, Product.active == True)
            .first()
        )

    def search(self, q: str, limit: int = 20) -> List[Product]:
        """Active products whose name, code or barcode contains ``q``."""
        like = f"%{q.strip()}%"
        return (
            self.db.query(Product)
            .filter(Product.active == True)
            .filter(
                or_(
                    Product.name.ilike(like),
                    Product.product_code.ilike(like),
                    Product.barcode.ilike(like),
                )
            )
            .order_by(Product.name)
            .limit(limit)
            .all()
        )

    def list(
        self, q: Optional[str] = None, page: int = 1, size: int = 20
    ) -> Tuple[List[Product], int]:
        query = self.db.query(Product).filter(Product.active == True)
        if q:
            like = f"%{q}%"
            query = query.filter(
                (Product.name.ilike(like)) | (Product.product_code.ilike(like))
            )
        total = query.with_entities(func.count()).scalar() or 0
        items = query.order_by(Product.name).offset((page - 1) * size).limit(size).all()
        return items, total

    def create_or_update(
        self,
        name: str,
        selling_price: float,
        stock_quantity: int = 0,
        product_code: str = None,
        barcode: str = None,
    ) -> Product:
        p = None
        if barcode:
            p = self.db.query(Product).filter(Product.barcode == barcode).first()
        if p:
            p.name = name
            p.selling_price = selling_price
            p.stock_quantity = stock_quantity
            p.product_code = product_code
        else:
            p = Product(
                name=name,
                selling_price=selling_price,
                stock_quantity=stock_quantity,
                product_code=product_code,
                barcode=barcode,
            )
            self.db.add(p)
        self.db.flush()
        return p

    def restock(self, product_id: int, qty: int) -> bool:
        """Add ``qty`` back to stock. False when the product no longer exists."""
        res = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + qty)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def decrement_if_available(self, product_id: int, qty: int) -> bool:
        """
        Take ``qty`` out of stock only if that much is on hand.

        Single conditional UPDATE, so two terminals racing for the last unit
        cannot both succeed.
        """
        res = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= qty)
            .values(stock_quantity=Product.stock_quantity - qty)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
